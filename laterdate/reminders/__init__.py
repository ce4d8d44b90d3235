"""Due-reminder dispatch (store gateway, resolver, channel senders, loop).

This module is intended to run as a single long-lived process started with
``laterdate-dispatch run``. It polls ``user_reminders`` on a fixed interval
and sends every due, unsent channel through its provider.
"""
