# Supabase table: user_settings
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_settings:
- id: uuid (primary key, default: gen_random_uuid())
- user_id: uuid (unique, not null, references auth.users.id)
- settings: jsonb (not null) - {"defaultCalendarView": "month", "weekStartsOn": 0}
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
