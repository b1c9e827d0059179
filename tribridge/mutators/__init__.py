"""
Mutator presets applied to text relayed from IRC into Discord.
"""
