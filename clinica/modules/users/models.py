# Supabase tables: user_profiles, auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

user_profiles:
- id: uuid (primary key, references auth.users.id) - one profile per auth identity
- email: text (unique, not null) - synced from auth.users
- full_name: text (nullable)
- role: text (not null) - super_admin | admin | scheduler | view_only
- status: text (not null, default: 'pending') - pending | approved | denied | suspended
- is_active: boolean (default: true)
- approved_by: uuid (nullable, references user_profiles.id)
- approved_at: timestamp (nullable)
- last_login: timestamp (nullable)
- notes: text (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Note: Authentication data (password, tokens) is stored in auth.users table
managed by Supabase Auth. Identities are only created here through the
privileged user-creation path (service role key).
"""
