"""
discovery/ - Asset registry, token lists and route generation.
"""
