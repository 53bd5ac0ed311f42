"""
dex/ - Quote provider contract and adapters.
"""
