from appdependency.identity import caller_id, code_id, definition_id, inferred_name


def identify():
    return caller_id()


def test_code_id_combines_source_location():
    assert code_id("app.services", "Services.clock", 12, 15) == "app.services[Services.clock|12:15]"


def test_caller_id_is_stable_for_the_same_call_site():
    ids = {identify() for _ in range(3)}

    assert len(ids) == 1


def test_caller_id_differs_between_call_sites():
    first = identify()
    second = identify()

    assert first != second


def test_caller_id_describes_calling_function():
    assert identify().startswith(
        f"{__name__}[test_caller_id_describes_calling_function|"
    )


def test_caller_id_distinguishes_columns_on_the_same_line():
    first, second = identify(), identify()

    assert first != second


def test_caller_id_respects_stacklevel():
    def nested():
        return caller_id(stacklevel=2)

    def outer():
        return nested()

    assert "test_caller_id_respects_stacklevel|" in outer()
    assert "outer|" not in outer()


def test_definition_id_uses_definition_site():
    def make_clock():
        pass

    line = make_clock.__code__.co_firstlineno

    assert definition_id(make_clock) == (
        f"{__name__}[test_definition_id_uses_definition_site.<locals>.make_clock|{line}:0]"
    )


def test_inferred_name_removes_make_prefix():
    def make_database():
        pass

    def clock():
        pass

    assert inferred_name(make_database) == "database"
    assert inferred_name(clock) == "clock"
