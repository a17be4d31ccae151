"""
Core pieces of the resource loader.

"""
