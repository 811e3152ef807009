"""TutorDesk Backend.

Back office for independent tutors: lesson scheduling, monthly invoicing,
prepaid session plans, payment reminders and parent messaging.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "0.1.0"
