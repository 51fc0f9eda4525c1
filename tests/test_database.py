import sqlite3

from ahamai import config, database


def test_db_path_defaults_to_data_dir(monkeypatch, tmp_path):
    monkeypatch.delenv("AHAMAI_DB_PATH")
    monkeypatch.setenv("AHAMAI_DATA_DIR", str(tmp_path / "data"))
    assert config.db_path() == str(tmp_path / "data" / "ahamai.db")


def test_init_db_creates_missing_directories(monkeypatch, tmp_path):
    target = tmp_path / "nested" / "deeper" / "ahamai.db"
    monkeypatch.setenv("AHAMAI_DB_PATH", str(target))
    database.init_db()
    assert target.exists()


def test_init_db_upgrades_old_sessions_table(monkeypatch, tmp_path):
    old = tmp_path / "old.db"
    conn = sqlite3.connect(old)
    conn.execute("CREATE TABLE sessions (id TEXT PRIMARY KEY, title TEXT, created_at TEXT)")
    conn.execute("INSERT INTO sessions VALUES ('s-old', 'Old chat', '2023-01-01T00:00:00+00:00')")
    conn.commit()
    conn.close()

    monkeypatch.setenv("AHAMAI_DB_PATH", str(old))
    database.init_db()
    # running it twice is harmless
    database.init_db()

    conn = sqlite3.connect(old)
    columns = {row[1] for row in conn.execute("PRAGMA table_info(sessions)")}
    row = conn.execute("SELECT user_id, is_pinned FROM sessions WHERE id = 's-old'").fetchone()
    conn.close()
    assert {"user_id", "is_pinned"} <= columns
    assert row == ("local", 0)


def test_messages_and_sessions():
    database.add_message("abcdefgh1234", "user", "first", tokens=2)
    database.add_message("abcdefgh1234", "assistant", "second", tokens=3)
    database.add_message("other", "user", "elsewhere", user_id="u2", title="Custom")

    history = database.get_chat_history("abcdefgh1234")
    assert [(m["role"], m["content"], m["tokens"]) for m in history] == [("user", "first", 2), ("assistant", "second", 3)]
    assert database.get_chat_history("abcdefgh1234", limit=1)[0]["content"] == "first"

    sessions = database.list_user_sessions("local")
    assert len(sessions) == 1
    assert sessions[0]["title"] == "Session abcdefgh"
    assert sessions[0]["message_count"] == 2
    assert sessions[0]["last_message"] == "second"
    assert sessions[0]["is_pinned"] is False

    assert database.get_user_profile("u2")["id"] == "u2"
    assert database.list_user_sessions("u2")[0]["title"] == "Custom"
    assert database.list_user_sessions("u2", since="2999-01-01") == []


def test_pinning():
    database.add_message("s1", "user", "hi")
    assert database.set_session_pinned("s1", True) is True
    assert database.set_session_pinned("missing", True) is False
    assert database.count_pinned_sessions("local") == 1
    database.set_session_pinned("s1", False)
    assert database.count_pinned_sessions("local") == 0


def test_ensure_user_keeps_first_profile():
    database.ensure_user("u1", name="First")
    database.ensure_user("u1", name="Second")
    assert database.get_user_profile("u1")["name"] == "First"
    assert database.get_user_profile("nobody") is None


def test_tool_usage_counts():
    for tool in ("stock", "crypto", "stock"):
        database.record_tool_usage("u1", tool)
    database.record_tool_usage("u2", "diagram")

    assert database.get_tool_usage("u1") == {"stock": 2, "crypto": 1}
    assert list(database.get_tool_usage("u1")) == ["stock", "crypto"]


def test_app_settings_upsert():
    assert database.get_app_setting("default_model") is None
    database.set_app_setting("default_model", "openai-compatible:gpt-4o")
    database.set_app_setting("default_model", "openai-compatible:gpt-4o-mini")
    assert database.get_app_setting("default_model") == "openai-compatible:gpt-4o-mini"
