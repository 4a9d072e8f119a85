# Copyright (C) Inco - All Rights Reserved.
#
# Written by Rafael Viotti <viotti@inco.vc>, October 2026.
#
# Unauthorized copying of this file, via any medium, is strictly prohibited. Proprietary and confidential.
#
# Refs
# ====
#
#  • http://towardsdatascience.com/pytest-with-marking-mocking-and-fixtures-in-10-minutes-678d7ccd2f70
#  • http://docs.pytest.org/en/stable/how-to/logging.html
#

'''Conftest module.'''

def pytest_configure(config):
    config.addinivalue_line('markers', 'smoke: quick sanity check of a calculation')
    config.addinivalue_line('markers', 'limitation: test reveals an intentional limitation of the API')
    config.addinivalue_line('markers', 'slow: mark test as slow')
