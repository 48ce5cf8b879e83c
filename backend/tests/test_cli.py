from clothpos.services import auth_service


def test_system_status_and_migrate(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "migrate"])
    assert result.exit_code == 0
    assert "already up to date" in result.output

    result = runner.invoke(args=["system", "status"])
    assert "Schema version" in result.output


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--username", "sam", "--password", "secret1", "--role", "cashier"])
    assert "OK Created cashier user 'sam'" in result.output
    assert auth_service.validate_user("sam", "secret1")["role"] == "cashier"

    result = runner.invoke(args=["users", "create", "--username", "sam", "--password", "secret1", "--role", "cashier"])
    assert "already exists" in result.output

    result = runner.invoke(args=["users", "create", "--username", "kofi", "--password", "abc", "--role", "admin"])
    assert "Password validation failed" in result.output

    result = runner.invoke(args=["users", "list"])
    assert "admin" in result.output
    assert "sam" in result.output
