"""
Protocol support: extracting application frames from the bytes read from a transport.
"""
