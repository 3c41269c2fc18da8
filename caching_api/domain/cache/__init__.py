"""
Cache Domain Module

Contains entities, value objects, the value codec, store interfaces and the
exception hierarchy of the consistency layer.
"""
