# Supabase table: shifts
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: text (primary key) - generated client side (uuid4)
- provider_id: text (not null, references providers.id)
- clinic_type_id: text (nullable, references clinic_types.id)
- medical_assistant_ids: text[] (nullable) - order carries no meaning
- title: text (nullable)
- start_date: date (not null)
- end_date: date (not null)
- start_time: time (nullable) - always null for vacation shifts
- end_time: time (nullable)
- is_vacation: boolean (default: false)
- notes: text (nullable)
- color: text (not null)
- recurring_rule: jsonb (nullable) - {"frequency", "interval", "daysOfWeek", "dayOfMonth", "endDate"}
- series_id: text (nullable) - shared by a recurring shift and its exceptions
- original_recurring_shift_id: text (nullable) - shift an exception was split from
- is_exception_instance: boolean (default: false)
- exception_for_date: date (nullable) - occurrence the exception replaces
- created_by_user_id: uuid (nullable)
- user_id: uuid (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())
"""
