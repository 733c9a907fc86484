# SPDX-License-Identifier: MIT
"""Integration tests for offline-sync.

These tests run complete sessions against real SQLite storage with a
scripted HTTP executor; they make no network calls.
"""
