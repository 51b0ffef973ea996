# Supabase table: audit_log
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key, default gen_random_uuid())
- user_id: uuid (nullable) - actor, references auth.users.id
- user_email: text (nullable)
- session_id: text (nullable) - per-process client session identifier
- action: text (not null) - create | update | delete
- table_name: text (not null)
- record_id: text (nullable)
- old_values: jsonb (nullable)
- new_values: jsonb (nullable)
- created_at: timestamp (default: now())

Rows are append-only: the application never updates or deletes them.
"""
