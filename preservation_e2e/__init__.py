"""
Preservation E2E - browser and API test harness for the digital preservation
platform (Deposits, Archival Groups, METS, IIIF).
"""

__version__ = "0.1.0"
