"""
Tick array routing for swaps

Finds the ordered tick arrays a swap starting at the pool's current price
will cross, derives their addresses and loads them in one RPC round trip.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, TYPE_CHECKING

from solders.pubkey import Pubkey

from .codec import decode
from .pda import tick_array_address
from .states import PoolState, TickArrayBitmapExtension, TickArrayState
from .tick_bitmap import get_first_initialized_tick_array, pool_next_initialized_tick_array_start_index
from ..config import DEFAULT_TICK_ARRAY_LOOKAHEAD
from ..errors import MissingAccountError, NoInitializedTickArrayError

if TYPE_CHECKING:
    from ..infra.rpc import RpcClient


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickArrayRoute:
    """
    Tick arrays a swap will touch, in trade order.

    start_indices strictly decrease when zero_for_one and strictly increase
    otherwise. complete is False when the bitmap ran out of initialized
    arrays before the lookahead bound was reached.
    """
    pool_id: Pubkey
    zero_for_one: bool
    start_indices: Tuple[int, ...]
    addresses: Tuple[Pubkey, ...]
    complete: bool

    def __len__(self) -> int:
        return len(self.start_indices)

    @property
    def first(self) -> Pubkey:
        return self.addresses[0]


class TickArrayRouter:
    """
    Walks the pool bitmap (inline, then extension) in trade direction.

    Usage:
        router = TickArrayRouter(program_id, max_lookahead=5)
        route = router.route(pool_id, pool_state, extension, zero_for_one=True)
        tick_arrays = router.load(rpc, route)
    """

    def __init__(self, program_id: Pubkey, max_lookahead: int = DEFAULT_TICK_ARRAY_LOOKAHEAD):
        if max_lookahead < 0:
            raise ValueError("max_lookahead must not be negative")
        self.program_id = program_id
        self.max_lookahead = max_lookahead

    def route(
        self,
        pool_address: Pubkey,
        pool_state: PoolState,
        bitmap_extension: Optional[TickArrayBitmapExtension],
        zero_for_one: bool,
    ) -> TickArrayRoute:
        """
        Build the route: the first initialized array, then up to
        max_lookahead further ones.

        Raises:
            NoInitializedTickArrayError: If no initialized array exists in the trade direction
            MissingAccountError: If the search needs the bitmap extension and it is None
        """
        first = get_first_initialized_tick_array(pool_state, bitmap_extension, zero_for_one)
        if first is None:
            raise NoInitializedTickArrayError.for_direction(str(pool_address), zero_for_one)

        _, current = first
        start_indices: List[int] = [current]
        complete = True

        for _ in range(self.max_lookahead):
            next_start = pool_next_initialized_tick_array_start_index(
                pool_state, bitmap_extension, current, zero_for_one
            )
            if next_start is None:
                complete = False
                break
            current = next_start
            start_indices.append(current)

        if not complete:
            logger.warning(
                f"Partial tick array route for pool {pool_address}: "
                f"{len(start_indices)} of {1 + self.max_lookahead} arrays "
                f"(zero_for_one={zero_for_one}, start_indices={start_indices})"
            )
        else:
            logger.debug(f"Tick array route for pool {pool_address}: {start_indices}")

        addresses = tuple(
            tick_array_address(self.program_id, pool_address, start).address for start in start_indices
        )
        return TickArrayRoute(
            pool_id=pool_address,
            zero_for_one=zero_for_one,
            start_indices=tuple(start_indices),
            addresses=addresses,
            complete=complete,
        )

    def load(self, rpc: "RpcClient", route: TickArrayRoute) -> List[TickArrayState]:
        """
        Fetch and decode every routed tick array with one getMultipleAccounts.

        Raises:
            MissingAccountError: If any routed account does not exist
        """
        raw_accounts = rpc.get_multiple_account_data([str(a) for a in route.addresses])
        tick_arrays = []
        for address, raw in zip(route.addresses, raw_accounts):
            if raw is None:
                raise MissingAccountError.not_found(str(address), "TickArrayState")
            tick_arrays.append(decode(TickArrayState, raw))
        return tick_arrays
