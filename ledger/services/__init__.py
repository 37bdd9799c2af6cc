from .donations import DonationLedger
from .donors import DonorRegistry
from .events import EventAlbum
from .fulfillment import RequestFulfillment
from .inventory import InventoryStock
from .projections import LeaderboardProjector, PotentialDonorAggregator

__all__ = [
    'Ledger', 'DonorRegistry', 'DonationLedger', 'InventoryStock',
    'RequestFulfillment', 'PotentialDonorAggregator', 'LeaderboardProjector',
    'EventAlbum',
]


class Ledger:
    """Wires the ledger components together. Build once and share it."""

    def __init__(self):
        self.donors = DonorRegistry()
        self.donations = DonationLedger(self.donors)
        self.inventory = InventoryStock()
        self.requests = RequestFulfillment(self.inventory)
        self.potential_donors = PotentialDonorAggregator(self.donors)
        self.leaderboard = LeaderboardProjector(self.donors)
        self.events = EventAlbum()
