from barbershop.main import app, root


def route_paths() -> list[str]:
    return [route.path for route in app.routes]


def test_root_reports_running() -> None:
    assert root() == {'status': 'Barbershop Booking API Running'}


def test_app_exposes_booking_routes() -> None:
    paths = route_paths()

    assert '/appointments/available-slots' in paths
    assert '/appointments/{appointment_id}' in paths
    assert '/appointments/lookup' in paths
    assert '/providers/availability/{unavailability_id}' in paths
    assert '/providers/{provider_id}/working-hours' in paths
    assert '/services' in paths


def test_time_off_routes_take_precedence_over_provider_lookup() -> None:
    paths = route_paths()

    assert paths.index('/providers/availability') < paths.index('/providers/{provider_id}')
    assert paths.index('/appointments/available-slots') < paths.index('/appointments/{appointment_id}')
    assert paths.index('/appointments/by-email') < paths.index('/appointments/{appointment_id}')
