"""
Dynamic content-modeling engine: schema registry, table factory, relation
resolver, translation overlay and query gateway.
"""
