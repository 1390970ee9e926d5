"""
Company holiday calendar used when no holiday file is configured.
"""

COMPANY_HOLIDAYS = [
    {"date": "2026-01-01", "name": "New Year's Day", "type": "National", "optional": False},
    {"date": "2026-01-15", "name": "Pongal", "type": "Festival", "optional": False},
    {"date": "2026-01-26", "name": "Republic Day", "type": "National", "optional": False},
    {"date": "2026-04-03", "name": "Good Friday", "type": "Festival", "optional": True},
    {"date": "2026-04-14", "name": "Tamil New Year", "type": "Festival", "optional": False},
    {"date": "2026-05-01", "name": "May Day", "type": "National", "optional": False},
    {"date": "2026-08-15", "name": "Independence Day", "type": "National", "optional": False},
    {"date": "2026-09-14", "name": "Ganesh Chaturthi", "type": "Festival", "optional": False},
    {"date": "2026-10-02", "name": "Gandhi Jayanti", "type": "National", "optional": False},
    {"date": "2026-11-09", "name": "Deepavali", "type": "Festival", "optional": False},
    {"date": "2026-12-25", "name": "Christmas", "type": "Festival", "optional": False},
]
