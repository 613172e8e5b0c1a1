"""Unified command-line interface for billkhata.

Usage:
    billkhata summary [--month YYYY-MM] [--member ID]
    billkhata payments [--month YYYY-MM] [--range "Last 3 Months"]
    billkhata pending
    billkhata approve {member,bill,expense,deposit} <id> [member_id]
    billkhata reject {bill,expense,deposit} <id> [member_id]
    billkhata meal <date> [--breakfast N] [--lunch N] [--dinner N]
    billkhata finalize <date>
    billkhata serve [--host] [--port]
"""
