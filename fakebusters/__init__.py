"""
Boards context: boards, memberships, join requests and board notifications.
"""
