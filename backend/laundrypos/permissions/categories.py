# Overview: Capability category constants for grouping related capabilities.


class CapabilityCategory:
    """Capability categories for organization and display."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    PEOPLE = "PEOPLE"
    SYSTEM = "SYSTEM"
