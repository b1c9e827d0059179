"""
The platforms Tribridge can connect to: IRC, and Discord.
"""
