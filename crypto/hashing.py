import hashlib


def _sha256(s):
    """sha256 hash"""
    return hashlib.sha256(s).digest()


def HASH256(s):
    """two rounds of sha256"""
    return _sha256(_sha256(s))
