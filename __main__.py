#!/usr/bin/env python3
#
# Copyright (C) Inco - All Rights Reserved.
#
# Written by Rafael Viotti <viotti@inco.vc>, October 2026.
#

'''Cotacore CLI.'''

# Python.
import sys
import csv
import json
import locale
import typing
import decimal
import logging
import datetime
import textwrap
import zoneinfo
import functools
import fileinput
import dataclasses

# Libs.
import sh2py
import tabulate

# Cotacore.
import cotacore

# Print helper.
_PR = functools.partial(print, file=sys.stderr, flush=True)

# Options for the installments table.
_SCHEDULE_OPTS = {
    'headers': ['Nº', 'Date', 'F.C.', 'T.A.', 'F.R.', 'Total', 'F.C. %', 'Bal. F.C.', 'Balance', 'Balance %', 'Credit', 'Paid'],
    'colalign': ('right', 'center', 'right', 'right', 'right', 'right', 'right', 'right', 'right', 'right', 'right', 'center')
}

# Affirmative answers.
_YES = ['s', 'sim', 'y', 'yes']

# A logger for this module.
_LOG = logging.getLogger('cotacore_cli')

# GMT-3.
_BRT = zoneinfo.ZoneInfo('America/Sao_Paulo')

# Today in Brazilian Regional Time (BRT).
_TODAY: typing.Callable[[], datetime.date] = lambda: datetime.datetime.now(_BRT).date()

def _read_indexes(path: str) -> typing.List[cotacore.MonthlyIndex]:
    '''
    Reads a table of monthly indexes from a CSV file, or from standard input if no path is given.

    Each line has three columns: the index code (INCC, IPCA, CDI, INCC_12 or IPCA_12), the month as an ISO 8601 date,
    and the rate, as a percentage. Lines starting with "#" are ignored.
    '''

    lst = [path] if path else []
    out = []

    if not lst:
        _PR('Index file not specified. Reading data from standard input…')

    with fileinput.input(lst, openhook=lambda f, _: open(f, newline='')) as file:
        for line in csv.reader(file):
            if not line or line[0].startswith('#'):
                continue

            out.append(cotacore.MonthlyIndex(code=line[0], date=datetime.date.fromisoformat(line[1]), rate=decimal.Decimal(line[2])))

    return out

def _read_payments(path: str) -> typing.Dict[int, cotacore.PaymentOverride]:
    '''
    Reads registered payments from a CSV file.

    Columns are the installment number, the amount paid, and the manual F.C., F.R., T.A., fine and interest values.
    Empty columns are left unset.
    '''

    out = {}

    with open(path, newline='') as file:
        for line in csv.reader(file):
            if not line or line[0].startswith('#'):
                continue

            val = [decimal.Decimal(x) if x else None for x in (line[1:] + [''] * 6)[:6]]

            out[int(line[0])] = cotacore.PaymentOverride(*val)

    return out

def _to_date(value: str) -> typing.Optional[datetime.date]:
    return datetime.date.fromisoformat(value) if value else None

def ajuda(command=''):
    '''
    Supported commands:

    - "gera_cronograma", generates the installments schedule of a quota;
    - "calcula_credito_atual", calculates the corrected credit value of a quota;
    - "calcula_correcao_cdi", calculates the CDI correction of a free bid.
    '''

    dic = globals()

    if command and command in dic and dic[command].__doc__ and command != 'ajuda':
        _PR(textwrap.dedent(dic[command].__doc__))

    else:
        _PR(textwrap.dedent(str(ajuda.__doc__)))

    return sh2py.HALT

def gera_cronograma(credito, prazo, taxa_adm, fundo_reserva, primeiro_vencimento, **kwargs):
    r'''
    Generates the installments schedule of a consortium quota.

    Required parameters:

      • "credito", the credit value;

      • "prazo", the term, in months;

      • "taxa_adm", the administration fee rate, as a percentage over the whole term;

      • "fundo_reserva", the reserve fund rate, as a percentage over the whole term;

      • "primeiro_vencimento", the first due date, in ISO 8601 format.

    Optional parameters:

      • "dia_vencimento", the due day of the month. Defaults to 25;

      • "adesao", the adhesion date. Annual corrections count from it;

      • "indice", the correction index. Can be INCC, IPCA, CDI, INCC_12 or IPCA_12;

      • "plano", the payment plan. Can be NORMAL, REDUZIDA or SEMESTRAL;

      • "contemplacao", the contemplation date. Marks the quota as contemplated;

      • "lance_livre" and "lance_embutido", the free and embedded bids;

      • "base_lance", the bid calculation base. Can be CREDITO or TOTAL;

      • "csv_indices", a CSV file with the correction indexes, one per line: code, month, rate. Example

          cotacore gera_cronograma 200000 60 16 2 2024-02-25 adesao=2024-01-10 indice=INCC csv_indices=incc.csv

      • "csv_pagamentos", a CSV file with registered payments: installment, amount paid, F.C., F.R., T.A., fine and
        interest;

      • "calc_date", the calculation date. Corrections after this date are not applied. Defaults to today;

      • "formato", the output format. Besides the formats supported by the Python Tabulate library, see
        "http://github.com/astanin/python-tabulate#table-format", this routine supports the "json", "csv" and "raw"
        formats.
    '''

    if kwargs.get('debug', '').lower() in _YES:
        logging.basicConfig(level=logging.DEBUG)

    # 0. Validate.
    if (plano := kwargs.get('plano', 'NORMAL')) not in typing.get_args(cotacore._PAYMENT_PLAN):
        _PR(f'Error: payment plan "{plano}" not supported.')

        return sh2py.HALT

    if (indice := kwargs.get('indice', 'INCC')) not in typing.get_args(cotacore._CORRECTION_INDEX):
        _PR(f'Error: correction index "{indice}" not supported.')

        return sh2py.HALT

    if (base := kwargs.get('base_lance', 'CREDITO')) not in typing.get_args(cotacore._BID_BASE):
        _PR(f'Error: bid base "{base}" not supported.')

        return sh2py.HALT

    # 1. Assemble the Cotacore call.
    kwa = {}

    kwa['credit_value'] = decimal.Decimal(credito)
    kwa['term'] = int(prazo)
    kwa['admin_fee_rate'] = decimal.Decimal(taxa_adm)
    kwa['reserve_fund_rate'] = decimal.Decimal(fundo_reserva)
    kwa['first_due_date'] = datetime.date.fromisoformat(primeiro_vencimento)
    kwa['adhesion_date'] = _to_date(kwargs.get('adesao', ''))
    kwa['correction_index'] = indice
    kwa['plan'] = plano
    kwa['bid_base'] = base
    kwa['bid_free'] = decimal.Decimal(kwargs.get('lance_livre', '0'))
    kwa['bid_embedded'] = decimal.Decimal(kwargs.get('lance_embutido', '0'))

    if 'dia_vencimento' in kwargs:
        kwa['due_day'] = int(kwargs['dia_vencimento'])

    if 'contemplacao' in kwargs:
        kwa['contemplated'] = True
        kwa['contemplation_date'] = datetime.date.fromisoformat(kwargs['contemplacao'])

    quota = cotacore.Quota(**kwa)
    idxs = _read_indexes(kwargs['csv_indices']) if 'csv_indices' in kwargs else []
    pmts = _read_payments(kwargs['csv_pagamentos']) if 'csv_pagamentos' in kwargs else {}
    rows = cotacore.generate_schedule(quota, idxs, calc_date=_to_date(kwargs.get('calc_date', '')) or _TODAY())

    if pmts:
        rows = cotacore.merge_schedule_with_payments(rows, pmts)

    # 2. Format the results.
    if (fmt := kwargs.get('formato', 'fancy_outline')) in tabulate.tabulate_formats:
        func = functools.partial(locale.currency, symbol=False, grouping=True)
        data = []

        tabulate.PRESERVE_WHITESPACE = True  # Force Tabulate to preserve spaces (http://github.com/astanin/python-tabulate#text-formatting).

        for x in rows:
            out = []

            out.append(x.no)
            out.append(x.date.strftime('%x'))
            out.append(func(x.fc))
            out.append(func(x.ta))
            out.append(func(x.fr))
            out.append(func(x.total))
            out.append(locale.str(x.rate_fc))  # pyright: ignore[reportArgumentType]
            out.append(func(x.bal_fc))
            out.append(func(x.bal))
            out.append(locale.str(round(x.pct, 4)))  # pyright: ignore[reportArgumentType]
            out.append(func(x.credit) + (' *' if x.corrected else ''))
            out.append('✓' if x.paid else '')

            data.append(out)

        _PR()
        _PR(tabulate.tabulate(data, tablefmt=fmt, **_SCHEDULE_OPTS))
        _PR()

        for x in rows:
            if x.bid_value:
                _PR(f'Bids processed on installment {x.no}, contemplation on {x.bid_date.strftime("%x")}:')  # pyright: ignore[reportOptionalMemberAccess]
                _PR(f'  Embedded: {func(x.embedded.value)} ({locale.str(round(x.embedded.pct, 4))}%) – F.C. {func(x.embedded.fc)}, T.A. {func(x.embedded.ta)}, F.R. {func(x.embedded.fr)}')  # pyright: ignore[reportArgumentType]
                _PR(f'  Free....: {func(x.free.value)} ({locale.str(round(x.free.pct, 4))}%) – F.C. {func(x.free.fc)}, T.A. {func(x.free.ta)}, F.R. {func(x.free.fr)}')  # pyright: ignore[reportArgumentType]
                _PR()

    elif fmt == 'json':
        data = []

        for x in rows:
            out = []

            out.append(x.no)
            out.append(x.date.isoformat())
            out.append(str(x.fc))
            out.append(str(x.ta))
            out.append(str(x.fr))
            out.append(str(x.total))
            out.append(str(x.rate_fc))
            out.append(str(x.bal_fc))
            out.append(str(x.bal))
            out.append(str(x.pct))
            out.append(str(x.credit))
            out.append(x.paid)

            data.append(out)

        print(json.dumps(data))

    elif fmt == 'csv':
        dev = csv.DictWriter(sys.stdout, [x.name for x in dataclasses.fields(cotacore.Installment) if x.name not in ('embedded', 'free')])

        dev.writeheader()

        for x in rows:
            dic = dataclasses.asdict(x)

            dic.pop('embedded')
            dic.pop('free')

            dev.writerow(dic)

    elif fmt == 'raw':
        for x in rows:
            print(x)

    else:
        _PR(f'Error, format "{fmt}" not supported.')

        return sh2py.HALT

def calcula_credito_atual(credito, adesao, indice, csv_indices='', data_corte='', contemplacao='', **kwargs):
    r'''
    Calculates the credit value of a quota, corrected on each anniversary of its adhesion date.

      • "credito", the original credit value;

      • "adesao", the adhesion date, in ISO 8601 format;

      • "indice", the correction index. Can be INCC, IPCA, CDI, INCC_12 or IPCA_12;

      • "csv_indices", a CSV file with the correction indexes. If not provided, standard input will be read;

      • "data_corte", optional, the cutoff date. Defaults to today;

      • "contemplacao", optional, the contemplation date. Corrections stop there.
    '''

    if kwargs.get('debug', '').lower() in _YES:
        logging.basicConfig(level=logging.DEBUG)

    if indice not in typing.get_args(cotacore._CORRECTION_INDEX):
        _PR(f'Error: correction index "{indice}" not supported.')

        return sh2py.HALT

    quota = cotacore.Quota(credit_value=decimal.Decimal(credito), adhesion_date=datetime.date.fromisoformat(adesao), correction_index=indice)

    if contemplacao:
        quota.contemplated = True
        quota.contemplation_date = datetime.date.fromisoformat(contemplacao)

    d0 = quota.adhesion_date
    d1 = _to_date(data_corte) or _TODAY()
    val = cotacore.calculate_current_credit_value(quota, _read_indexes(csv_indices), d1)

    _PR(f'Index..............: {indice}')
    _PR(f'Period.............: {d0.strftime("%x")} to {d1.strftime("%x")}')  # pyright: ignore[reportOptionalMemberAccess]
    _PR(f'Original credit....: {locale.currency(quota.credit_value, symbol=False, grouping=True)}')
    _PR(f'Current credit.....: {locale.currency(val, symbol=False, grouping=True)}')
    _PR(f'Factor.............: {locale.str(round(val / quota.credit_value, 10)) if quota.credit_value else "-"}')  # pyright: ignore[reportArgumentType]
    _PR(f'Generation.........: {datetime.datetime.now(_BRT).strftime("%d/%m/%Y %H:%M:%S")}')

def calcula_correcao_cdi(valor, data_inicio, csv_indices='', calc_date='', **kwargs):
    r'''
    Calculates the CDI correction of a free bid, at 92% of the CDI, from a start date to today.

      • "valor", the bid amount;

      • "data_inicio", the start date, usually the contemplation date;

      • "csv_indices", a CSV file with the indexes. Only CDI lines are used. If not provided, standard input will be read;

      • "calc_date", optional, the calculation date. Defaults to today.
    '''

    if kwargs.get('debug', '').lower() in _YES:
        logging.basicConfig(level=logging.DEBUG)

    amt = decimal.Decimal(valor)
    d0 = datetime.date.fromisoformat(data_inicio)
    d1 = _to_date(calc_date) or _TODAY()
    val = cotacore.calculate_savings_correction(amt, d0, _read_indexes(csv_indices), calc_date=d1)

    _PR(f'Period.............: {d0.strftime("%x")} to {d1.strftime("%x")}')
    _PR(f'Amount.............: {locale.currency(amt, symbol=False, grouping=True)}')
    _PR(f'Correction.........: {locale.currency(val, symbol=False, grouping=True)}')
    _PR(f'Corrected amount...: {locale.currency(amt + val, symbol=False, grouping=True)}')
    _PR(f'Generation.........: {datetime.datetime.now(_BRT).strftime("%d/%m/%Y %H:%M:%S")}')

cli = sh2py.CommandLineMapper()

cli.add(ajuda)
cli.add(gera_cronograma)
cli.add(calcula_credito_atual)
cli.add(calcula_correcao_cdi)

locale.setlocale(locale.LC_ALL, 'pt_BR.UTF-8')

if cli.run() is sh2py.HALT:
    exit(1)

# vi:fdm=marker:
