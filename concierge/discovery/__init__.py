"""
Discovery pipeline - scoring, fingerprinting and run accounting for scanned mail.
"""
