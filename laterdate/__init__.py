"""LaterDate reminder dispatcher.

Polls the reminder store for due reminders and delivers them over email,
SMS and voice calls, tracking per-channel delivery so repeated polls never
re-send a channel that already succeeded.
"""
