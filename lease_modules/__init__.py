"""
Lease Modules.

Thin orchestration layers over the lease kernel and engines.
Each module contains:
- Request value objects (``models.py``)
- ORM persistence models (``orm.py``)
- A service that loads snapshots, runs engines and persists results

Modules:
- Invoice: lease invoices, charge lines, payments
- Receipt: customer receipts, allocations, cheque clearing
- Termination: contract terminations, deductions, refunds
- Masterdata: currencies, cost centers, suppliers, companies,
  deductions, e-mail templates and contract reference data

Business rules live in ``lease_engines``; modules only orchestrate.
"""
