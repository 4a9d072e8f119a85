# Copyright (C) Inco - All Rights Reserved.
#
# Written by Rafael Viotti <viotti@inco.vc>, October 2026.
#
# Unauthorized copying of this file, via any medium, is strictly prohibited. Proprietary and confidential.
#
# [COTACORE]
#
# Consortium quotas ("cotas de consórcio") are paid in monthly installments with three components, each one a
# percentage of the quota's credit value ("carta de crédito"):
#
#   • FC, the common fund ("fundo comum"), which sums up to 100% over the term.
#
#   • TA, the administration fee ("taxa de administração"), which sums up to the contract's fee rate.
#
#   • FR, the reserve fund ("fundo de reserva"), which sums up to the contract's reserve rate.
#
# The core routine, "get_schedule", operates in four phases:
#
#   1. Calculates the due date and the annual correction of the credit value, when there is one.
#   2. Processes bids ("lances"), exactly once, abating the remaining balances.
#   3. Determines the monthly rates of the installment according to the payment plan.
#   4. Creates the output instance of the iteration, Installment, and rounding.
#
# The running balances are percentages, not money. Money is derived from them on each row, using the credit value
# corrected so far. The last installment pays exactly what is left of each component.
#
# [WEAKNESSES]
#
#   • Due dates skip weekends only. There is no holiday calendar.
#
#   • Percentage rates are rounded to four decimal places before being applied. A thirteenth installment may thus
#     differ from the twelfth by 0.0001%.
#
#   • A bid larger than the remaining balances produces negative balances. Percentages are floored at zero on
#     output, but the internal registers keep the signed values.
#

'''
INCO consortium core, Cotacore.

Calculation library for Brazilian consortium quotas.

Its main purpose is to generate the installments schedule of a quota, with annual monetary correction of the credit
value by INCC, IPCA or CDI, bid abatement, and the normal, reduced and semi-annual payment plans. The library also
overlays manually registered payments onto the theoretical schedule, keeping the balances consistent.

Supporting routines calculate the current credit value of a quota, the CDI correction of a free bid, and a few
aggregations used by reports.
'''

# Python.
import copy
import math
import uuid
import types
import typing as t
import decimal
import logging
import datetime
import functools
import collections
import dataclasses
import importlib.metadata

# Libs.
import typeguard
import dateutil.relativedelta

# Cotacore version (http://versioningit.readthedocs.io/en/stable/runtime-version.html).
__version__ = importlib.metadata.version('cotacore') if 'cotacore' in importlib.metadata.packages_distributions() else 'DEV'

# Logger object.
_LOG = logging.getLogger('cotacore')

# Zero as decimal.
_0 = decimal.Decimal()

# One as decimal.
_1 = decimal.Decimal(1)

# One hundred as decimal.
_100 = decimal.Decimal(100)

# One half as decimal.
_HALF = decimal.Decimal('0.5')

# Centi factor.
_CENTI = decimal.Decimal('0.01')

# Basis point factor, used for percentage rates.
_BASIS = decimal.Decimal('0.0001')

# Centesimal quantization.
_Q = functools.partial(decimal.Decimal.quantize, exp=_CENTI, rounding=decimal.ROUND_HALF_UP)

# Percentage rate quantization.
_Q4 = functools.partial(decimal.Decimal.quantize, exp=_BASIS, rounding=decimal.ROUND_HALF_UP)

# A month.
_MONTH = dateutil.relativedelta.relativedelta(months=1)

# Due day used when a quota has none.
DEFAULT_DUE_DAY = 25

# Share of the CDI rate used to correct free bids.
CDI_RATIO = decimal.Decimal('0.92')

# Maximum amount of anniversaries walked by "calculate_current_credit_value".
MAX_ANNIVERSARIES = 100

# Length of a semi-annual plan cycle, in months.
SEMESTER = 6

# Newton-Raphson limits of the effective cost calculation.
IRR_MAX_ITERATIONS = 1000

IRR_PRECISION = decimal.Decimal('1e-7')

# Product types: vehicles and real estate.
_PRODUCT = t.Literal['VEICULO', 'IMOVEL']

# Correction indexes. The "_12" variants are accumulated over 12 months.
_CORRECTION_INDEX = t.Literal['INCC', 'IPCA', 'CDI', 'INCC_12', 'IPCA_12']

# Payment plans.
_PAYMENT_PLAN = t.Literal['NORMAL', 'REDUZIDA', 'SEMESTRAL']

# Bid calculation bases, credit only or the total project (credit plus fees).
_BID_BASE = t.Literal['CREDITO', 'TOTAL']

# Helpers. {{{
@typeguard.typechecked
def _month(date: datetime.date) -> datetime.date:
    '''
    Returns the first day of the month of a date.

    >>> from datetime import date
    >>>
    >>> _month(date(2024, 2, 29))
    datetime.date(2024, 2, 1)
    '''

    return date.replace(day=1)

@typeguard.typechecked
def _ratio(a: decimal.Decimal, b: decimal.Decimal) -> decimal.Decimal:
    '''
    Divides A by B, returning zero if B is zero.

    >>> _ratio(decimal.Decimal(1), decimal.Decimal(4))
    Decimal('0.25')
    >>> _ratio(decimal.Decimal(1), decimal.Decimal(0))
    Decimal('0')
    '''

    return a / b if b else _0

@typeguard.typechecked
def _index_table(indexes: t.Iterable['MonthlyIndex']) -> t.Dict[t.Tuple[str, datetime.date], decimal.Decimal]:
    return {(x.code, _month(x.date)): x.rate for x in indexes}

@typeguard.typechecked
def _semester_rate(target: decimal.Decimal, deferred: decimal.Decimal, closing: bool) -> t.Tuple[decimal.Decimal, decimal.Decimal]:
    '''
    Returns the rate to be paid in a month of a semi-annual plan, and the updated deferred amount.

    On months one to five of a cycle, half the target is paid, and the rest is deferred.

    >>> _semester_rate(decimal.Decimal('8'), decimal.Decimal('1'), False)
    (Decimal('4.0000'), Decimal('5.0000'))

    The sixth month pays the target plus everything deferred, and clears the deferred amount.

    >>> _semester_rate(decimal.Decimal('8'), decimal.Decimal('20'), True)
    (Decimal('28.0000'), Decimal('0'))
    '''

    if closing:
        return _Q4(target + deferred), _0

    rate = _Q4(target * _HALF)

    return rate, deferred + target - rate

@typeguard.typechecked
def _irr(flows: t.List[decimal.Decimal], guess: decimal.Decimal = _CENTI) -> t.Optional[decimal.Decimal]:
    '''
    Returns the internal rate of return of a series of monthly cash flows, or None if it can't be found.

    Newton-Raphson, stopping after IRR_MAX_ITERATIONS or when the rate moves less than IRR_PRECISION. A rate at, or
    below, minus 100% ends the search.

    >>> _irr([decimal.Decimal(100), decimal.Decimal(-110)]).quantize(_BASIS)
    Decimal('0.1000')
    >>> _irr([decimal.Decimal(100000), decimal.Decimal(-10)]) is None
    True
    '''

    rate = guess

    for _ in range(IRR_MAX_ITERATIONS):
        if rate <= -_1:
            return None

        npv = _0
        der = _0

        for n, x in enumerate(flows):
            div = (_1 + rate) ** n
            npv += x / div
            der -= n * x / (div * (_1 + rate))

        if abs(npv) < IRR_PRECISION or abs(der) < IRR_PRECISION:
            return rate

        nxt = rate - npv / der

        if abs(nxt - rate) < IRR_PRECISION:
            return nxt

        rate = nxt

    return None
# }}}

# Public API. Calendar. {{{
@typeguard.typechecked
def add_months(date: datetime.date, n: int) -> datetime.date:
    '''
    Adds N months to a date.

    The day of the month is clamped to the last day of the target month.

    >>> from datetime import date
    >>>
    >>> add_months(date(2024, 1, 31), 1)
    datetime.date(2024, 2, 29)
    >>> add_months(date(2023, 1, 31), 1)
    datetime.date(2023, 2, 28)
    >>> add_months(date(2023, 5, 15), -5)
    datetime.date(2022, 12, 15)
    >>> add_months(date(2023, 5, 15), 0)
    datetime.date(2023, 5, 15)
    '''

    return date + _MONTH * n

@typeguard.typechecked
def next_business_day(date: datetime.date) -> datetime.date:
    '''
    Moves a date forward until it falls on a weekday.

    >>> from datetime import date
    >>>
    >>> next_business_day(date(2025, 5, 10))
    datetime.date(2025, 5, 12)
    >>> next_business_day(date(2025, 5, 11))
    datetime.date(2025, 5, 12)
    >>> next_business_day(date(2025, 5, 12))
    datetime.date(2025, 5, 12)
    '''

    while date.weekday() >= 5:
        date += datetime.timedelta(days=1)

    return date
# }}}

# Public API. Main classes. {{{
@dataclasses.dataclass
class Quota:
    '''
    A consortium quota.

      • "group" and "number" identify the quota within its administrator. The pair is unique.

      • "credit_value" is the original credit value ("carta de crédito").

      • "term" is the amount of monthly installments.

      • "admin_fee_rate" and "reserve_fund_rate" are percentages over the whole term.

      • "first_due_date" is the due date of the first installment. The following ones fall on "due_day".

      • "correction_index" is the index used on the annual correction of the credit value.

      • "plan" is the payment plan, normal, reduced ("REDUZIDA") or semi-annual ("SEMESTRAL").

      • "bid_free" is the free bid ("lance livre"), paid with the member's money. "bid_embedded" is the embedded bid
        ("lance embutido"), paid with the credit itself. Their sum is "bid_total", which can't be set.

      • "bid_base" tells which base is used to calculate the bid percentage.

      • "credit_adjustment" is a manual adjustment of the credit value.

      • "bid_free_correction" is the CDI correction of the free bid. It is calculated by the storage backend.
    '''

    id: str = ''

    group: str = ''

    number: str = ''

    contract_number: t.Optional[str] = None

    credit_value: decimal.Decimal = _0

    adhesion_date: t.Optional[datetime.date] = None

    first_assembly_date: t.Optional[datetime.date] = None

    term: int = 0

    admin_fee_rate: decimal.Decimal = _0

    reserve_fund_rate: decimal.Decimal = _0

    product: _PRODUCT = 'VEICULO'

    first_due_date: t.Optional[datetime.date] = None

    due_day: t.Optional[int] = None

    correction_index: _CORRECTION_INDEX = 'INCC'

    plan: _PAYMENT_PLAN = 'NORMAL'

    contemplated: bool = False

    contemplation_date: t.Optional[datetime.date] = None

    bid_free: decimal.Decimal = _0

    bid_embedded: decimal.Decimal = _0

    bid_base: _BID_BASE = 'CREDITO'

    credit_adjustment: decimal.Decimal = _0

    bid_free_correction: decimal.Decimal = _0

    @property
    def bid_total(self) -> decimal.Decimal:
        return self.bid_free + self.bid_embedded

@dataclasses.dataclass
class MonthlyIndex:
    '''A monthly observation of a correction index. The rate is a percentage, and may be negative.'''

    code: str = ''

    date: datetime.date = datetime.date.min

    rate: decimal.Decimal = _0

    id: str = ''

@dataclasses.dataclass
class PaymentOverride:
    '''
    A payment registered by hand for an installment.

    Its mere existence marks the installment as paid. Fields left as None keep the theoretical values.
    '''

    amount_paid: t.Optional[decimal.Decimal] = None

    fc: t.Optional[decimal.Decimal] = None

    fr: t.Optional[decimal.Decimal] = None

    ta: t.Optional[decimal.Decimal] = None

    fine: t.Optional[decimal.Decimal] = None

    interest: t.Optional[decimal.Decimal] = None

@dataclasses.dataclass
class CreditUsage:
    '''A draw against the credit of a contemplated quota.'''

    id: str = ''

    quota_id: str = ''

    description: str = ''

    date: datetime.date = datetime.date.min

    amount: decimal.Decimal = _0

    seller: t.Optional[str] = None

@dataclasses.dataclass
class BidAbatement:
    '''
    The decomposition of a bid over the components of a quota.

      • "value" is the bid amount.

      • "pct" is the bid percentage over the bid calculation base.

      • "fc", "ta" and "fr" are the monetary shares of the bid. They always sum up to "value".

      • "pct_fc", "pct_ta" and "pct_fr" are the shares as percentages of the credit value.
    '''

    value: decimal.Decimal = _0

    pct: decimal.Decimal = _0

    fc: decimal.Decimal = _0

    ta: decimal.Decimal = _0

    fr: decimal.Decimal = _0

    pct_fc: decimal.Decimal = _0

    pct_ta: decimal.Decimal = _0

    pct_fr: decimal.Decimal = _0

@dataclasses.dataclass
class Installment:
    '''
    An entry of an installments schedule.

      • "no" is the installment's number.

      • "date" is the due date, always a business day.

      • "fc", "ta" and "fr" are the monetary components of the installment, and "total" is their sum (plus fine and
        interest, after a merge).

      • "rate_fc", "rate_ta" and "rate_fr" are the monthly percentage rates applied.

      • "bal_fc", "bal_ta", "bal_fr" and "bal" are the remaining balances, in money.

      • "pct_fc", "pct_ta", "pct_fr" and "pct" are the remaining balances, as percentages. Never negative.

      • "credit" is the credit value, corrected up to this installment.

      • "corrected" tells whether the credit value was corrected on this installment. If so, "cf" is the correction
        factor and "index" the correction index.

      • "bid_base_value", "bid_value" and "bid_date" are set on the installment where bids were processed.
        "embedded" and "free" detail the embedded and free bids.

      • "manual_fc", "manual_fr", "manual_ta", "fine" and "interest" are the values informed by hand.

      • "paid" tells if a payment was registered for the installment, and "amount_paid" is the amount paid.
    '''

    no: int = 0

    date: datetime.date = datetime.date.min

    fc: decimal.Decimal = _0

    ta: decimal.Decimal = _0

    fr: decimal.Decimal = _0

    total: decimal.Decimal = _0

    rate_fc: decimal.Decimal = _0

    rate_ta: decimal.Decimal = _0

    rate_fr: decimal.Decimal = _0

    bal_fc: decimal.Decimal = _0

    bal_ta: decimal.Decimal = _0

    bal_fr: decimal.Decimal = _0

    bal: decimal.Decimal = _0

    pct_fc: decimal.Decimal = _0

    pct_ta: decimal.Decimal = _0

    pct_fr: decimal.Decimal = _0

    pct: decimal.Decimal = _0

    credit: decimal.Decimal = _0

    corrected: bool = False

    cf: decimal.Decimal = _1

    index: t.Optional[str] = None

    bid_base_value: decimal.Decimal = _0

    bid_value: decimal.Decimal = _0

    bid_date: t.Optional[datetime.date] = None

    embedded: BidAbatement = dataclasses.field(default_factory=BidAbatement)

    free: BidAbatement = dataclasses.field(default_factory=BidAbatement)

    manual_fc: t.Optional[decimal.Decimal] = None

    manual_fr: t.Optional[decimal.Decimal] = None

    manual_ta: t.Optional[decimal.Decimal] = None

    fine: t.Optional[decimal.Decimal] = None

    interest: t.Optional[decimal.Decimal] = None

    paid: bool = False

    amount_paid: t.Optional[decimal.Decimal] = None
# }}}

# Public API. Correction. {{{
@typeguard.typechecked
def calculate_current_credit_value(
    quota: Quota,
    indexes: t.List[MonthlyIndex],
    cutoff: t.Optional[datetime.date] = None, *,
    calc_date: t.Optional[datetime.date] = None
) -> decimal.Decimal:
    '''
    Calculates the credit value of a quota, corrected up to a cutoff date.

    The credit is corrected on every anniversary of the quota, counted from its adhesion date (or its first due date,
    if the adhesion date is unknown). The index used is the quota's correction index, for the month just before the
    anniversary. Only positive rates are applied.

      • "cutoff" defaults to "calc_date", which defaults to today. For a contemplated quota, the cutoff is never after
        the contemplation date.

    At most MAX_ANNIVERSARIES anniversaries are walked.

    >>> from datetime import date
    >>>
    >>> quota = Quota(credit_value=decimal.Decimal(100000), adhesion_date=date(2020, 3, 15), correction_index='IPCA')
    >>> indexes = [MonthlyIndex('IPCA', date(2021, 2, 1), decimal.Decimal(4))]
    >>>
    >>> calculate_current_credit_value(quota, indexes, date(2021, 3, 15))
    Decimal('104000.00')
    >>> calculate_current_credit_value(quota, indexes, date(2021, 3, 14))
    Decimal('100000.00')
    '''

    value = quota.credit_value
    start = quota.adhesion_date or quota.first_due_date

    if not start:
        return _Q(value)

    cutoff = cutoff or calc_date or datetime.date.today()

    if quota.contemplated and quota.contemplation_date and quota.contemplation_date < cutoff:
        cutoff = quota.contemplation_date

    table = _index_table(indexes)

    for k in range(1, MAX_ANNIVERSARIES + 1):
        if add_months(start, 12 * k) > cutoff:
            break

        ref = _month(add_months(start, 12 * k - 1))
        rate = table.get((quota.correction_index, ref))

        if rate is None:
            _LOG.warning(f'no {quota.correction_index} index found for month {ref.year:04d}-{ref.month:02d} (anniversary {k} of {start})')

        elif rate > _0:
            value *= _1 + rate / _100

    else:
        _LOG.warning(f'anniversary walk stopped after {MAX_ANNIVERSARIES} iterations (anchor is {start}, cutoff is {cutoff})')

    return _Q(value)

@typeguard.typechecked
def calculate_savings_correction(
    amount: decimal.Decimal,
    start_date: t.Optional[datetime.date],
    indexes: t.List[MonthlyIndex], *,
    calc_date: t.Optional[datetime.date] = None
) -> decimal.Decimal:
    '''
    Calculates the CDI correction of an amount, from a start date to today.

    Every CDI observation from the start month to the calculation date is compounded at CDI_RATIO of its rate. Only
    the correction is returned, not the corrected amount.

    >>> from datetime import date
    >>>
    >>> indexes = [MonthlyIndex('CDI', date(2024, 3, 1), decimal.Decimal(1)), MonthlyIndex('CDI', date(2024, 4, 1), decimal.Decimal(1))]
    >>>
    >>> calculate_savings_correction(decimal.Decimal(10000), date(2024, 3, 20), indexes, calc_date=date(2024, 12, 31))
    Decimal('184.85')
    >>> calculate_savings_correction(decimal.Decimal(10000), None, indexes)
    Decimal('0')
    '''

    if amount <= _0 or start_date is None:
        return _0

    calc_date = calc_date or datetime.date.today()
    ini = _month(start_date)
    fac = _1

    for x in sorted(indexes, key=lambda x: x.date):
        if x.code == 'CDI' and ini <= _month(x.date) <= calc_date:
            fac *= _1 + x.rate * CDI_RATIO / _100

    return _Q(amount * fac - amount)
# }}}

# Public API. Installments schedule. {{{
@typeguard.typechecked
def get_schedule(quota: Quota, indexes: t.List[MonthlyIndex], *, calc_date: t.Optional[datetime.date] = None) -> t.Generator[Installment, None, None]:
    '''
    Generates the installments schedule of a quota.

    Parameters:

      • "quota", the quota.

      • "indexes", the table of monthly correction indexes. Only the quota's correction index is used. It does not need
        to be sorted.

      • "calc_date", the calculation date, defaults to today. Corrections whose index month is after this date are not
        applied, i.e., the schedule never projects corrections.

    Yields "quota.term" instances of Installment. Nothing is yielded if the quota has no term, or no first due date.

    Each component starts with a balance of 100% (FC), "admin_fee_rate" (TA), and "reserve_fund_rate" (FR). On each
    installment, the following happens.

      1. The credit value is corrected on installments 13, 25, 37 etc., by the index of the month before the
         anniversary, when it is known and positive.

      2. Bids are processed on the first installment due on, or after, the contemplation date. Each bid is split among
         FC, TA and FR proportionally to their remaining balances, and the shares are abated from the balances.

      3. The monthly rates are determined by the payment plan.

         – NORMAL, the remaining balance divided by the remaining months.

         – REDUZIDA, half of the regular FC rate until the middle of the term, while the quota isn't contemplated. TA
           and FR are not reduced.

         – SEMESTRAL, half of the regular rate on months one to five of each six months cycle, and the regular rate
           plus the deferred halves on the sixth.

         The last installment pays whatever is left. Other rates are rounded to four decimal places.

      4. The installment values are the rates applied to the corrected credit value, rounded to cents.
    '''

    # Balances generator.
    #
    #  • "pct.fc", "pct.ta" and "pct.fr" are the remaining percentages of each component.
    #
    def track_balances() -> t.Generator[None, types.SimpleNamespace | None, None]:
        while True:
            dec = yield

            if dec:
                regs.pct.fc -= dec.fc
                regs.pct.ta -= dec.ta
                regs.pct.fr -= dec.fr

    def abate(amount: decimal.Decimal, base: decimal.Decimal) -> BidAbatement:
        bid = BidAbatement()

        if amount <= _0:
            return bid

        total = regs.pct.fc + regs.pct.ta + regs.pct.fr

        if not total:
            _LOG.warning(f'bid of {amount} on a quota without remaining balance, assigning it to the reserve fund')

        bid.value = amount
        bid.pct = _ratio(amount, base) * _100
        bid.fc = _Q(amount * _ratio(regs.pct.fc, total))
        bid.ta = _Q(amount * _ratio(regs.pct.ta, total))
        bid.fr = amount - bid.fc - bid.ta
        bid.pct_fc = _ratio(bid.fc, regs.credit) * _100
        bid.pct_ta = _ratio(bid.ta, regs.credit) * _100
        bid.pct_fr = _ratio(bid.fr, regs.credit) * _100

        gens.balances.send(types.SimpleNamespace(fc=bid.pct_fc, ta=bid.pct_ta, fr=bid.pct_fr))

        return bid

    # A. Validation and preparation.
    gens = types.SimpleNamespace()
    regs = types.SimpleNamespace()

    if quota.term < 0:
        raise ValueError('"term" must be a greater than, or equal to, zero')

    if quota.credit_value < _0:
        raise ValueError('"credit_value" must be a greater than, or equal to, zero')

    if quota.due_day is not None and not 1 <= quota.due_day <= 31:
        raise ValueError('"due_day" must be between 1 and 31')

    if quota.plan not in t.get_args(_PAYMENT_PLAN):
        raise NotImplementedError(f'unsupported payment plan {quota.plan}')

    if quota.bid_base not in t.get_args(_BID_BASE):
        raise NotImplementedError(f'unsupported bid base {quota.bid_base}')

    if quota.correction_index not in t.get_args(_CORRECTION_INDEX):
        raise NotImplementedError(f'unsupported correction index {quota.correction_index}')

    if not quota.term or not quota.first_due_date:
        return

    calc_date = calc_date or datetime.date.today()
    anchor = _month(quota.adhesion_date or quota.first_due_date)
    due_day = dateutil.relativedelta.relativedelta(day=quota.due_day or DEFAULT_DUE_DAY)
    half_term = math.ceil(quota.term / 2)
    table = _index_table(indexes)

    # Registers.
    regs.credit = quota.credit_value
    regs.pct = types.SimpleNamespace(fc=_100, ta=quota.admin_fee_rate, fr=quota.reserve_fund_rate)
    regs.deferred = types.SimpleNamespace(fc=_0, ta=_0, fr=_0)
    regs.bid_processed = False

    # Control, create and start generators.
    gens.balances = track_balances()

    gens.balances.send(None)

    # B. Execution.
    for num in range(1, quota.term + 1):
        out = Installment(no=num)
        left = quota.term - num + 1

        # Phase B.0, due date and correction.
        if num == 1:
            out.date = next_business_day(quota.first_due_date)

        else:
            out.date = next_business_day(add_months(quota.first_due_date, num - 1) + due_day)

        if num > 1 and (num - 1) % 12 == 0:
            ref = add_months(anchor, num - 2)

            if ref <= calc_date:
                rate = table.get((quota.correction_index, ref))

                if rate is None:
                    _LOG.warning(f'no {quota.correction_index} index found for month {ref.year:04d}-{ref.month:02d} (installment {num})')

                elif rate > _0:
                    out.corrected = True
                    out.cf = _1 + rate / _100
                    out.index = quota.correction_index

                    regs.credit *= out.cf

        # Phase B.1, bids.
        if quota.bid_base == 'CREDITO':
            base = regs.credit

        elif quota.bid_base == 'TOTAL':
            base = regs.credit * (_1 + (quota.admin_fee_rate + quota.reserve_fund_rate) / _100)

        else:
            raise NotImplementedError(f'unsupported bid base {quota.bid_base}')

        if not regs.bid_processed and quota.contemplated and quota.contemplation_date and quota.contemplation_date <= out.date:
            regs.bid_processed = True

            out.bid_base_value = _Q(base)
            out.bid_value = quota.bid_total
            out.bid_date = quota.contemplation_date
            out.embedded = abate(quota.bid_embedded, base)
            out.free = abate(quota.bid_free, base)

        # Phase B.2, rates.
        rates = types.SimpleNamespace()

        if num == quota.term:
            rates.fc = regs.pct.fc
            rates.ta = regs.pct.ta
            rates.fr = regs.pct.fr

        elif quota.plan == 'SEMESTRAL':
            closing = num % SEMESTER == 0

            rates.fc, regs.deferred.fc = _semester_rate(regs.pct.fc / left, regs.deferred.fc, closing)
            rates.ta, regs.deferred.ta = _semester_rate(regs.pct.ta / left, regs.deferred.ta, closing)
            rates.fr, regs.deferred.fr = _semester_rate(regs.pct.fr / left, regs.deferred.fr, closing)

        elif quota.plan == 'REDUZIDA':
            waiting = not quota.contemplated or (quota.contemplation_date is not None and quota.contemplation_date > out.date)

            if num <= half_term and waiting:
                rates.fc = _Q4(_100 / quota.term * _HALF)

            else:
                rates.fc = _Q4(regs.pct.fc / left)

            rates.ta = _Q4(regs.pct.ta / left)
            rates.fr = _Q4(regs.pct.fr / left)

        elif quota.plan == 'NORMAL':
            rates.fc = _Q4(regs.pct.fc / left)
            rates.ta = _Q4(regs.pct.ta / left)
            rates.fr = _Q4(regs.pct.fr / left)

        else:
            raise NotImplementedError(f'unsupported payment plan {quota.plan}')

        gens.balances.send(rates)

        # Phase B.3, output.
        out.rate_fc = rates.fc
        out.rate_ta = rates.ta
        out.rate_fr = rates.fr
        out.fc = _Q(rates.fc / _100 * regs.credit)
        out.ta = _Q(rates.ta / _100 * regs.credit)
        out.fr = _Q(rates.fr / _100 * regs.credit)
        out.total = out.fc + out.ta + out.fr
        out.credit = _Q(regs.credit)
        out.bal_fc = _Q(regs.pct.fc / _100 * regs.credit)
        out.bal_ta = _Q(regs.pct.ta / _100 * regs.credit)
        out.bal_fr = _Q(regs.pct.fr / _100 * regs.credit)
        out.bal = _Q((regs.pct.fc + regs.pct.ta + regs.pct.fr) / _100 * regs.credit)
        out.pct_fc = max(_0, regs.pct.fc)
        out.pct_ta = max(_0, regs.pct.ta)
        out.pct_fr = max(_0, regs.pct.fr)
        out.pct = max(_0, regs.pct.fc + regs.pct.ta + regs.pct.fr)

        _LOG.debug(f'n={num}, regs={regs}')

        yield out

@typeguard.typechecked
def generate_schedule(quota: Quota, indexes: t.List[MonthlyIndex], *, calc_date: t.Optional[datetime.date] = None) -> t.List[Installment]:
    '''Returns the installments schedule of a quota as a list. See "get_schedule".'''

    return list(get_schedule(quota, indexes, calc_date=calc_date))

@typeguard.typechecked
def merge_schedule_with_payments(schedule: t.List[Installment], overrides: t.Dict[int, PaymentOverride]) -> t.List[Installment]:
    '''
    Overlays registered payments onto a schedule.

    Returns a new schedule. The given one isn't modified.

    Every installment with an override is marked as paid. Overridden components replace the theoretical ones, and the
    difference between them (theoretical minus override) is carried to the balances of that installment and of all the
    following ones. Paying less than due raises the balance; paying more lowers it, down to zero.

    >>> from datetime import date
    >>>
    >>> quota = Quota(credit_value=decimal.Decimal(1000), term=2, first_due_date=date(2025, 1, 10), due_day=10)
    >>> rows = merge_schedule_with_payments(generate_schedule(quota, []), {1: PaymentOverride(fc=decimal.Decimal(400))})
    >>> [(x.no, x.paid, x.fc, x.bal) for x in rows]
    [(1, True, Decimal('400'), Decimal('600.00')), (2, False, Decimal('500.00'), Decimal('100.00'))]
    '''

    diff = types.SimpleNamespace(fc=_0, fr=_0, ta=_0)
    out = []

    for ent in schedule:
        row = copy.deepcopy(ent)
        ovr = overrides.get(ent.no)

        if ovr is not None:
            if ovr.fc is not None:
                diff.fc += ent.fc - ovr.fc
                row.fc = row.manual_fc = ovr.fc

            if ovr.fr is not None:
                diff.fr += ent.fr - ovr.fr
                row.fr = row.manual_fr = ovr.fr

            if ovr.ta is not None:
                diff.ta += ent.ta - ovr.ta
                row.ta = row.manual_ta = ovr.ta

            row.fine = ovr.fine
            row.interest = ovr.interest
            row.paid = True
            row.amount_paid = ovr.amount_paid

        row.bal_fc = max(_0, ent.bal_fc + diff.fc)
        row.bal_fr = max(_0, ent.bal_fr + diff.fr)
        row.bal_ta = max(_0, ent.bal_ta + diff.ta)
        row.bal = row.bal_fc + row.bal_fr + row.bal_ta
        row.pct_fc = _ratio(row.bal_fc, ent.credit) * _100
        row.pct_fr = _ratio(row.bal_fr, ent.credit) * _100
        row.pct_ta = _ratio(row.bal_ta, ent.credit) * _100
        row.pct = _ratio(row.bal, ent.credit) * _100
        row.total = row.fc + row.fr + row.ta + (row.fine or _0) + (row.interest or _0)

        out.append(row)

    return out
# }}}

# Public API. Storage backend classes. {{{
class BackendError(Exception):
    pass

class DuplicateKeyError(BackendError):
    pass

class NotFoundError(BackendError):
    pass

class StorageBackend:
    def save_quota(self, quota: Quota) -> Quota:
        '''
        Creates or updates a quota, and returns the stored record.

        A quota without an identifier is created. Two quotas can't share the same group and number.
        '''

        raise NotImplementedError()

    def get_quota(self, quota_id: str) -> Quota:
        raise NotImplementedError()

    def get_quotas(self) -> t.List[Quota]:
        raise NotImplementedError()

    def delete_quota(self, quota_id: str) -> None:
        '''Deletes a quota, along with its payments and credit usages.'''

        raise NotImplementedError()

    def save_index(self, index: MonthlyIndex) -> MonthlyIndex:
        '''Creates or updates an index. Two indexes can't share the same code and month.'''

        raise NotImplementedError()

    def delete_index(self, index_id: str) -> None:
        raise NotImplementedError()

    def get_indexes(self, code: t.Optional[str] = None) -> t.List[MonthlyIndex]:
        raise NotImplementedError()

    def save_payment(self, quota_id: str, no: int, override: PaymentOverride) -> PaymentOverride:
        '''Registers a payment for an installment. Fields left as None keep their previous values.'''

        raise NotImplementedError()

    def delete_payment(self, quota_id: str, no: int) -> None:
        raise NotImplementedError()

    def get_payments(self, quota_id: str) -> t.Dict[int, PaymentOverride]:
        raise NotImplementedError()

    def save_credit_usage(self, usage: CreditUsage) -> CreditUsage:
        raise NotImplementedError()

    def delete_credit_usage(self, usage_id: str) -> None:
        raise NotImplementedError()

    def get_credit_usages(self, quota_id: t.Optional[str] = None) -> t.List[CreditUsage]:
        raise NotImplementedError()

    @typeguard.typechecked
    def get_installments(self, quota_id: str, *, calc_date: t.Optional[datetime.date] = None) -> t.List[Installment]:
        '''Returns the schedule of a quota, with its registered payments.'''

        sched = generate_schedule(self.get_quota(quota_id), self.get_indexes(), calc_date=calc_date)

        return merge_schedule_with_payments(sched, self.get_payments(quota_id))

class InMemoryBackend(StorageBackend):
    '''
    A storage backend that keeps everything in primary memory.

    Records are copied on the way in and on the way out.

      • "calc_date" is the calculation date used to refresh the CDI correction of free bids. Defaults to today.
    '''

    def __init__(self, *, calc_date: t.Optional[datetime.date] = None):
        self.calc_date = calc_date

        self._quotas: t.Dict[str, Quota] = {}
        self._indexes: t.Dict[str, MonthlyIndex] = {}
        self._payments: t.Dict[str, t.Dict[int, PaymentOverride]] = {}
        self._usages: t.Dict[str, CreditUsage] = {}

    @typeguard.typechecked
    def save_quota(self, quota: Quota) -> Quota:
        for x in self._quotas.values():
            if x.id != quota.id and x.group == quota.group and x.number == quota.number:
                raise DuplicateKeyError(f'quota {quota.number} of group {quota.group} already exists')

        ent = dataclasses.replace(quota, id=quota.id or uuid.uuid4().hex)

        ent.bid_free_correction = calculate_savings_correction(ent.bid_free, ent.contemplation_date, self.get_indexes('CDI'), calc_date=self.calc_date)

        self._quotas[ent.id] = ent

        return dataclasses.replace(ent)

    @typeguard.typechecked
    def get_quota(self, quota_id: str) -> Quota:
        if quota_id not in self._quotas:
            raise NotFoundError(f'quota {quota_id} not found')

        return dataclasses.replace(self._quotas[quota_id])

    @typeguard.typechecked
    def get_quotas(self) -> t.List[Quota]:
        return [dataclasses.replace(x) for x in sorted(self._quotas.values(), key=lambda x: (x.group, x.number))]

    @typeguard.typechecked
    def delete_quota(self, quota_id: str) -> None:
        if quota_id not in self._quotas:
            raise NotFoundError(f'quota {quota_id} not found')

        del self._quotas[quota_id]

        self._payments.pop(quota_id, None)
        self._usages = {k: v for k, v in self._usages.items() if v.quota_id != quota_id}

    @typeguard.typechecked
    def save_index(self, index: MonthlyIndex) -> MonthlyIndex:
        ent = dataclasses.replace(index, id=index.id or uuid.uuid4().hex, date=_month(index.date))

        for x in self._indexes.values():
            if x.id != ent.id and x.code == ent.code and x.date == ent.date:
                raise DuplicateKeyError(f'{ent.code} index for month {ent.date.year:04d}-{ent.date.month:02d} already exists')

        self._indexes[ent.id] = ent

        return dataclasses.replace(ent)

    @typeguard.typechecked
    def delete_index(self, index_id: str) -> None:
        if index_id not in self._indexes:
            raise NotFoundError(f'index {index_id} not found')

        del self._indexes[index_id]

    @typeguard.typechecked
    def get_indexes(self, code: t.Optional[str] = None) -> t.List[MonthlyIndex]:
        lst = [dataclasses.replace(x) for x in self._indexes.values() if code is None or x.code == code]

        return sorted(lst, key=lambda x: (x.code, x.date))

    @typeguard.typechecked
    def save_payment(self, quota_id: str, no: int, override: PaymentOverride) -> PaymentOverride:
        if quota_id not in self._quotas:
            raise NotFoundError(f'quota {quota_id} not found')

        old = self._payments.setdefault(quota_id, {}).get(no, PaymentOverride())
        kwa: t.Dict[str, t.Any] = {}

        for fld in dataclasses.fields(PaymentOverride):
            val = getattr(override, fld.name)

            kwa[fld.name] = getattr(old, fld.name) if val is None else val

        self._payments[quota_id][no] = PaymentOverride(**kwa)

        return PaymentOverride(**kwa)

    @typeguard.typechecked
    def delete_payment(self, quota_id: str, no: int) -> None:
        if no not in self._payments.get(quota_id, {}):
            raise NotFoundError(f'payment {no} of quota {quota_id} not found')

        del self._payments[quota_id][no]

    @typeguard.typechecked
    def get_payments(self, quota_id: str) -> t.Dict[int, PaymentOverride]:
        return {k: dataclasses.replace(v) for k, v in self._payments.get(quota_id, {}).items()}

    @typeguard.typechecked
    def save_credit_usage(self, usage: CreditUsage) -> CreditUsage:
        if usage.quota_id not in self._quotas:
            raise NotFoundError(f'quota {usage.quota_id} not found')

        ent = dataclasses.replace(usage, id=usage.id or uuid.uuid4().hex)

        self._usages[ent.id] = ent

        return dataclasses.replace(ent)

    @typeguard.typechecked
    def delete_credit_usage(self, usage_id: str) -> None:
        if usage_id not in self._usages:
            raise NotFoundError(f'credit usage {usage_id} not found')

        del self._usages[usage_id]

    @typeguard.typechecked
    def get_credit_usages(self, quota_id: t.Optional[str] = None) -> t.List[CreditUsage]:
        lst = [dataclasses.replace(x) for x in self._usages.values() if quota_id is None or x.quota_id == quota_id]

        return sorted(lst, key=lambda x: x.date)
# }}}

# Public API. Reports. {{{
@dataclasses.dataclass
class CreditPosition:
    '''
    The credit position of a quota.

      • "credit" is the current credit value, "adjustment" its manual adjustment, and "embedded" the embedded bid.

      • "net" is the credit minus the embedded bid.

      • "used" is the sum of credit usages, and "available" what is left: net plus adjustment minus used.
    '''

    credit: decimal.Decimal = _0

    adjustment: decimal.Decimal = _0

    embedded: decimal.Decimal = _0

    net: decimal.Decimal = _0

    used: decimal.Decimal = _0

    available: decimal.Decimal = _0

@dataclasses.dataclass
class MonthlySummary:
    '''The installments of a month, summed over all quotas. "fees" is TA plus FR, and "others" is fine plus interest.'''

    month: str = ''

    fc: decimal.Decimal = _0

    fees: decimal.Decimal = _0

    bids: decimal.Decimal = _0

    others: decimal.Decimal = _0

    total: decimal.Decimal = _0

    count: int = 0

@dataclasses.dataclass
class PortfolioSummary:
    '''
    Totals of a portfolio of quotas.

      • "active" and "contemplated" count the quotas.

      • "net_credit" is the sum of current credit values minus embedded bids; "contemplated_net_credit" is the same,
        for contemplated quotas only.

      • "avg_bid_pct" and "avg_free_bid_pct" are averages over contemplated quotas with a bid.

      • "available" is the net credit plus adjustments minus usages. "available_contemplated" only counts contemplated
        quotas, each one floored at zero.

      • "paid" sums matured installments and bid abatements, "to_pay" the other installments.

      • "upcoming" holds the next installment of each quota, with the quota identifier, ordered by due date.

      • "avg_monthly_cost" and "avg_annual_cost" are the effective cost ("CET") of the quotas, as percentages, weighted by
        net credit. Each quota's monthly cost is the internal rate of return of its net credit against its
        installments, compounded over 12 months for the annual cost. When it can't be found, the fees spread linearly
        over the term are used instead, without compounding.
    '''

    active: int = 0

    contemplated: int = 0

    net_credit: decimal.Decimal = _0

    contemplated_net_credit: decimal.Decimal = _0

    bid_free: decimal.Decimal = _0

    bid_embedded: decimal.Decimal = _0

    avg_bid_pct: decimal.Decimal = _0

    avg_free_bid_pct: decimal.Decimal = _0

    adjustment: decimal.Decimal = _0

    reserve_fund: decimal.Decimal = _0

    used: decimal.Decimal = _0

    available: decimal.Decimal = _0

    available_contemplated: decimal.Decimal = _0

    paid: decimal.Decimal = _0

    to_pay: decimal.Decimal = _0

    pct_paid: decimal.Decimal = _0

    pct_to_pay: decimal.Decimal = _0

    upcoming: t.List[t.Tuple[str, Installment]] = dataclasses.field(default_factory=list)

    avg_monthly_cost: decimal.Decimal = _0

    avg_annual_cost: decimal.Decimal = _0

@dataclasses.dataclass
class UsageReport:
    '''Credit usages, summed up. Usages without a seller fall under "Não Informado".'''

    total: decimal.Decimal = _0

    by_seller: t.Dict[str, decimal.Decimal] = dataclasses.field(default_factory=dict)

    by_description: t.Dict[str, decimal.Decimal] = dataclasses.field(default_factory=dict)

@dataclasses.dataclass
class PositionRow:
    '''
    The position of a quota at a reference date.

      • "credit" is the credit value of the last installment due up to the reference date.

      • "matured" sums the installments due up to the reference date, with fine and interest, plus the bid abatements.
        "to_pay" sums the other installments. "pct_matured" and "pct_to_pay" are their shares of the whole contract.

      • "pct_bid_total" is the total bid as a percentage of "credit".

      • "credit_at_contemplation" is the credit corrected up to the reference date, or up to the contemplation date if
        the quota was contemplated before it. "net_credit" discounts the embedded bid from it, and "total_credit" adds
        the manual adjustment to "net_credit".

      • "bid_free_correction" is the CDI correction of the free bid, from the contemplation date to the reference date.

      • "used" sums the credit usages dated up to the reference date, and "available" is "total_credit" minus "used".
    '''

    quota_id: str = ''

    group: str = ''

    number: str = ''

    contemplated: bool = False

    credit: decimal.Decimal = _0

    matured: decimal.Decimal = _0

    pct_matured: decimal.Decimal = _0

    to_pay: decimal.Decimal = _0

    pct_to_pay: decimal.Decimal = _0

    bid_total: decimal.Decimal = _0

    pct_bid_total: decimal.Decimal = _0

    bid_free: decimal.Decimal = _0

    bid_embedded: decimal.Decimal = _0

    credit_at_contemplation: decimal.Decimal = _0

    net_credit: decimal.Decimal = _0

    adjustment: decimal.Decimal = _0

    total_credit: decimal.Decimal = _0

    bid_free_correction: decimal.Decimal = _0

    used: decimal.Decimal = _0

    available: decimal.Decimal = _0

@typeguard.typechecked
def get_current_credit(installments: t.List[Installment], quota: Quota, *, calc_date: t.Optional[datetime.date] = None) -> decimal.Decimal:
    '''
    Returns the credit value of the last installment due up to the calculation date.

    Before the first due date, the credit of the first installment is returned. Without installments, the quota's
    original credit value.
    '''

    calc_date = calc_date or datetime.date.today()
    past = [x for x in installments if x.date <= calc_date]

    if past:
        return past[-1].credit

    elif installments:
        return installments[0].credit

    return quota.credit_value

@typeguard.typechecked
def get_credit_position(backend: StorageBackend, quota_id: str, *, calc_date: t.Optional[datetime.date] = None) -> CreditPosition:
    quota = backend.get_quota(quota_id)
    out = CreditPosition()

    out.credit = get_current_credit(backend.get_installments(quota_id, calc_date=calc_date), quota, calc_date=calc_date)
    out.adjustment = quota.credit_adjustment
    out.embedded = quota.bid_embedded
    out.net = out.credit - out.embedded
    out.used = sum((x.amount for x in backend.get_credit_usages(quota_id)), _0)
    out.available = out.net + out.adjustment - out.used

    return out

@typeguard.typechecked
def get_monthly_report(
    backend: StorageBackend,
    begin: datetime.date,
    end: datetime.date, *,
    calc_date: t.Optional[datetime.date] = None
) -> t.List[MonthlySummary]:
    '''
    Sums the installments of all quotas due between two dates (inclusive), month by month.

    Registered payments replace the theoretical values, so the report mixes realized and projected figures. Bids are
    accounted on the month they were processed. Months are returned from the newest to the oldest.
    '''

    if end < begin:
        raise ValueError(f'end date {end} is before begin date {begin}')

    dic: t.Dict[str, MonthlySummary] = {}

    for quota in backend.get_quotas():
        for x in backend.get_installments(quota.id, calc_date=calc_date):
            if begin <= x.date <= end:
                key = x.date.strftime('%Y-%m')
                ent = dic.setdefault(key, MonthlySummary(month=key))

                ent.fc += x.fc
                ent.fees += x.ta + x.fr
                ent.bids += x.bid_value
                ent.others += (x.fine or _0) + (x.interest or _0)
                ent.total = ent.fc + ent.fees + ent.bids + ent.others
                ent.count += 1

    return sorted(dic.values(), key=lambda x: x.month, reverse=True)

@typeguard.typechecked
def get_portfolio_summary(backend: StorageBackend, *, calc_date: t.Optional[datetime.date] = None) -> PortfolioSummary:
    '''Summarizes all quotas of a backend, as of the calculation date.'''

    calc_date = calc_date or datetime.date.today()
    out = PortfolioSummary()
    pct = collections.defaultdict(list)
    cost = types.SimpleNamespace(monthly=_0, annual=_0, weight=_0)

    for quota in backend.get_quotas():
        rows = backend.get_installments(quota.id, calc_date=calc_date)
        credit = get_current_credit(rows, quota, calc_date=calc_date)
        net = credit - quota.bid_embedded
        used = sum((x.amount for x in backend.get_credit_usages(quota.id)), _0)

        if quota.contemplated:
            out.contemplated += 1
            out.contemplated_net_credit += net
            out.available_contemplated += max(_0, net + quota.credit_adjustment - used)

            if credit > _0 and quota.bid_total > _0:
                pct['total'].append(quota.bid_total / credit * _100)
                pct['free'].append(quota.bid_free / credit * _100)

        else:
            out.active += 1

        out.net_credit += net
        out.bid_free += quota.bid_free
        out.bid_embedded += quota.bid_embedded
        out.adjustment += quota.credit_adjustment
        out.used += used

        for x in rows:
            out.reserve_fund += x.fr

            if x.date <= calc_date:
                out.paid += x.total

            else:
                out.to_pay += x.fc + x.ta + x.fr

            if x.bid_value > _0:
                out.paid += x.embedded.fc + x.embedded.ta + x.embedded.fr + x.free.fc + x.free.ta + x.free.fr
                out.reserve_fund += x.embedded.fr + x.free.fr

        if (nxt := next((x for x in rows if x.date > calc_date), None)) is not None:
            out.upcoming.append((quota.id, nxt))

        if net > _0:
            if (irr := _irr([net] + [-x.total for x in rows])) is not None:
                mon, ann = irr, (_1 + irr) ** 12 - _1

            else:
                mon = (quota.admin_fee_rate + quota.reserve_fund_rate) / (quota.term or 1) / _100
                ann = mon * 12

            cost.monthly += mon * net
            cost.annual += ann * net
            cost.weight += net

    if pct['total']:
        out.avg_bid_pct = sum(pct['total'], _0) / len(pct['total'])
        out.avg_free_bid_pct = sum(pct['free'], _0) / len(pct['free'])

    out.available = out.net_credit + out.adjustment - out.used
    out.pct_paid = _ratio(out.paid, out.paid + out.to_pay) * _100
    out.pct_to_pay = _ratio(out.to_pay, out.paid + out.to_pay) * _100
    out.avg_monthly_cost = _ratio(cost.monthly, cost.weight) * _100
    out.avg_annual_cost = _ratio(cost.annual, cost.weight) * _100
    out.upcoming.sort(key=lambda x: x[1].date)

    return out

@typeguard.typechecked
def get_credit_usage_report(
    backend: StorageBackend,
    quota_id: t.Optional[str] = None, *,
    begin: t.Optional[datetime.date] = None,
    end: t.Optional[datetime.date] = None
) -> UsageReport:
    out = UsageReport()

    for x in backend.get_credit_usages(quota_id):
        if (begin and x.date < begin) or (end and x.date > end):
            continue

        sel = x.seller or 'Não Informado'
        dsc = x.description or 'Sem Descrição'

        out.total += x.amount
        out.by_seller[sel] = out.by_seller.get(sel, _0) + x.amount
        out.by_description[dsc] = out.by_description.get(dsc, _0) + x.amount

    return out

@typeguard.typechecked
def get_position_report(backend: StorageBackend, ref_date: datetime.date) -> t.List[PositionRow]:
    '''
    Returns the position of every quota at a reference date.

    Registered payments replace the theoretical values of the installments. Indexes and credit usages after the
    reference date are ignored.
    '''

    indexes = backend.get_indexes()
    out = []

    for quota in backend.get_quotas():
        rows = backend.get_installments(quota.id, calc_date=ref_date)
        ent = PositionRow(quota_id=quota.id, group=quota.group, number=quota.number, contemplated=quota.contemplated)

        ent.credit = get_current_credit(rows, quota, calc_date=ref_date)

        for x in rows:
            if x.date <= ref_date:
                ent.matured += x.fc + x.ta + x.fr + (x.fine or _0) + (x.interest or _0)

            else:
                ent.to_pay += x.fc + x.ta + x.fr

            ent.matured += x.embedded.value + x.free.value

        ent.pct_matured = _ratio(ent.matured, ent.matured + ent.to_pay) * _100
        ent.pct_to_pay = _ratio(ent.to_pay, ent.matured + ent.to_pay) * _100
        ent.bid_total = quota.bid_total
        ent.pct_bid_total = _ratio(quota.bid_total, ent.credit) * _100
        ent.bid_free = quota.bid_free
        ent.bid_embedded = quota.bid_embedded
        ent.credit_at_contemplation = calculate_current_credit_value(quota, indexes, ref_date)
        ent.net_credit = ent.credit_at_contemplation - quota.bid_embedded
        ent.adjustment = quota.credit_adjustment
        ent.total_credit = ent.net_credit + ent.adjustment
        ent.bid_free_correction = calculate_savings_correction(quota.bid_free, quota.contemplation_date, indexes, calc_date=ref_date)
        ent.used = sum((x.amount for x in backend.get_credit_usages(quota.id) if x.date <= ref_date), _0)
        ent.available = ent.total_credit - ent.used

        out.append(ent)

    return out
# }}}

# Log current version info.
_LOG.info(f'Cotacore version {__version__} initialized')

if __name__ == '__main__':
    import doctest

    doctest.testmod()

# vi:fdm=marker:
