"""
Reference leave data for the demo record store.
In production, entitlements and the employee directory live in Snowflake.
"""

LEAVE_ENTITLEMENTS = {
    "ANNUAL": 21,
    "CASUAL": 12,
    "SICK": 12,
    "MATERNITY": 180,
    "PATERNITY": 15,
}

# Leave types only offered to one gender
GENDER_RESTRICTED_LEAVE = {
    "MATERNITY": "female",
    "PATERNITY": "male",
}

WFH_POLICY = {
    "description": "Up to two work-from-home days per Monday-Sunday week; more needs manager review",
}

# Mock employee directory (in production, this is in Snowflake)
MOCK_EMPLOYEES = {
    "john.doe@company.com": {
        "employee_id": "E001",
        "name": "John Doe",
        "email": "john.doe@company.com",
        "department": "Engineering",
        "gender": "male",
    },
    "priya.sharma@company.com": {
        "employee_id": "E002",
        "name": "Priya Sharma",
        "email": "priya.sharma@company.com",
        "department": "Marketing",
        "gender": "female",
    },
}


def get_employee_data(email: str):
    """Get employee data by email."""
    if not email:
        return None
    return MOCK_EMPLOYEES.get(email.strip().lower())
