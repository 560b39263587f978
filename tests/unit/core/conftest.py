"""Shared fixtures for core unit tests"""

import pytest

from legalmd.core.diagnostics import DiagnosticLog
from legalmd.core.tracking import FieldLedger


CONTRACT_MD = """\
---
title: Services Agreement
client:
  name: Acme Corp
  country: France
is_nda: false
fee: 1500
parties:
  - name: Acme Corp
    role: Client
  - name: Widget Ltd
    role: Provider
level-one: "%n."
level-two: "%n.%n"
---

l. Definitions |defs|

ll. Services

The services are described in |defs|.
"""


@pytest.fixture(name="diagnostics")
def diagnostics_fixture():
    return DiagnosticLog()


@pytest.fixture(name="ledger")
def ledger_fixture():
    return FieldLedger()


@pytest.fixture(name="contract_md")
def contract_md_fixture():
    return CONTRACT_MD
