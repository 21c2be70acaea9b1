from .memory import InMemoryShareStore
from .supabase import SupabaseShareStore
