"""
orphan_finder — recover orphaned certificates and precertificates.

Replays CA orphaning log lines (or a single DER file), checks storage for
each certificate, requests a fresh OCSP response from the CA, and inserts
the missing records with their true issuance time.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
