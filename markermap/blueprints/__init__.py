"""
Marker Map Moderation Platform
Blueprint registry: map_bp (public map + moderation), admin_bp (import/export, jobs).
"""
