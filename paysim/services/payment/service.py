"""Simulated charge outcomes."""

import random

from paysim.common.logging import logger
from paysim.common.metrics import charge_outcomes_total
from paysim.services.payment.schemas import ChargedInvoice, Invoice


class OutcomeGenerator:
    """Coin flip deciding whether a charge succeeds.

    One instance is shared by the whole process. The generator is seeded once
    on construction (from OS entropy when `seed` is None) and never reseeded.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def __call__(self) -> bool:
        # Single C-level call on the shared generator; atomic under the GIL.
        return self._rng.getrandbits(1) == 1


class ChargeService:
    """Charges invoices by drawing a random outcome for each one."""

    def __init__(self, outcome: OutcomeGenerator | None = None, service_name: str = "payment") -> None:
        self.outcome = outcome or OutcomeGenerator()
        self.service_name = service_name

    def charge(self, invoice: Invoice) -> ChargedInvoice:
        result = self.outcome()
        charge_outcomes_total.labels(
            service=self.service_name,
            result="success" if result else "failure",
        ).inc()
        logger.debug("invoice charged customer_id=%s result=%s", invoice.customer_id, result)
        return ChargedInvoice(**invoice.model_dump(), result=result)
