"""Resource (gas) estimation."""

import logging
import math

from pubkey_sync.ledger import (
    EstimationError,
    LedgerError,
    LedgerRpc,
    NetworkError,
)
from pubkey_sync.models.txn import SignerMetadata, UnsignedTransaction
from pubkey_sync.txn import encode_draft

LOGGER = logging.getLogger(__name__)

DEFAULT_RESOURCE_LIMIT = 300000
DEFAULT_ADJUSTMENT = 3.0


class ResourceEstimator:
    """Estimate the resource limit for a transaction by simulation."""

    def __init__(
        self,
        rpc: LedgerRpc,
        *,
        enabled: bool = True,
        adjustment_factor: float = DEFAULT_ADJUSTMENT,
        default_limit: int = DEFAULT_RESOURCE_LIMIT,
    ):
        """Init the estimator."""
        if adjustment_factor <= 0:
            raise ValueError("Adjustment factor must be positive")
        self.rpc = rpc
        self.enabled = enabled
        self.adjustment_factor = adjustment_factor
        self.default_limit = default_limit

    def adjust(self, simulated_units: int) -> int:
        """Scale simulated usage to absorb estimation variance."""
        return math.ceil(simulated_units * self.adjustment_factor)

    async def estimate(
        self, unsigned: UnsignedTransaction, metadata: SignerMetadata
    ) -> int:
        """Return the resource limit to use for unsigned.

        Simulation rejections surface as EstimationError rather than falling
        back to the default limit; they usually mean the operation is invalid.
        """
        if not self.enabled:
            return self.default_limit

        draft = encode_draft(unsigned, metadata)
        try:
            response = await self.rpc.simulate(draft)
        except NetworkError:
            raise
        except LedgerError as err:
            raise EstimationError(f"Simulation rejected: {err}") from err

        limit = self.adjust(response.gas_info.gas_used)
        LOGGER.debug(
            "Simulated %d units, using limit %d",
            response.gas_info.gas_used,
            limit,
        )
        return limit
