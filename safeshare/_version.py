
__version__ = "0.1.0"
__banner__ = \
"""
# safeshare %s 
# One code, one download.
""" % __version__
