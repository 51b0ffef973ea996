# Supabase tables: providers, clinic_types, medical_assistants
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
All three tables share one structure:
- id: text (primary key) - generated client side (uuid4)
- name: text (not null)
- color: text (not null) - display tag, e.g. "bg-blue-500" or "#1e88e5"
- is_active: boolean (default: true) - soft disable, rows are not hard-deleted in normal flow
- user_id: uuid (nullable) - creating user
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())
"""
