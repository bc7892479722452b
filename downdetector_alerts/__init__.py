"""Scheduled Downdetector polling job.

Each run checks the configured services once, sends a Telegram alert for
services whose latest report count is above the threshold (subject to a
per-service cooldown), and records when each alert went out.
"""
