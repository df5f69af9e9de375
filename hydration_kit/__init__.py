"""
Intune Hydration Kit
====================
Populates a Microsoft Intune tenant with a baseline of groups, filters,
compliance, security baseline, app protection, enrollment and conditional
access objects from declarative JSON templates.

Every object the kit creates carries a provenance marker; removal only ever
touches marked objects. Existing objects are never modified, and conditional
access policies are always created disabled.
"""

__version__ = "1.0.0"
__author__ = "Intune Hydration Kit"
