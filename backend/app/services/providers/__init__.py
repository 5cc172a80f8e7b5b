"""Image/video provider implementations.

Each provider speaks one upstream API and follows the async job pattern:
  submit → provider handle → query status by handle
"""
