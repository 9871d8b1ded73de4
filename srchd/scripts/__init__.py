from srchd.scripts.manager import Script, ScriptManager, sanitize_script_name

__all__ = ["Script", "ScriptManager", "sanitize_script_name"]
