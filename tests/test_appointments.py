import pytest

from medibook.core.security import UserRole
from medibook.models.appointment import Appointment
from tests import auth_header


def book(client, token, payload):
    return client.post("/api/appointments", json=payload, headers=auth_header(token))


class TestCreateAppointment:

    def test_create_and_get_round_trip(self, client, make_user, make_doctor):
        """A booked appointment reads back with doctor and patient resolved."""
        doctor, doctor_user, _ = make_doctor(specialization="Dermatology", fees=80.0)
        patient, token = make_user(name="Pat Patient", address="42 Elm Street")

        response = book(client, token, {
            "doctor": doctor.id,
            "date": "2026-11-02",
            "time": "09:00 AM",
            "reason": "Skin rash",
            "notes": "Since last week",
        })
        assert response.status_code == 201
        created = response.json()["data"]
        assert created["status"] == "pending"
        assert created["version"] == 1

        response = client.get(f"/api/appointments/{created['id']}", headers=auth_header(token))
        assert response.status_code == 200
        data = response.json()["data"]

        assert data["date"] == "2026-11-02"
        assert data["time"] == "09:00 AM"
        assert data["reason"] == "Skin rash"
        assert data["notes"] == "Since last week"
        assert data["doctor"]["id"] == doctor.id
        assert data["doctor"]["specialization"] == "Dermatology"
        assert data["doctor"]["fees"] == 80.0
        assert data["doctor"]["user"] == {
            "id": doctor_user.id,
            "name": doctor_user.name,
            "email": doctor_user.email,
            "phone": doctor_user.phone,
        }
        assert data["patient"] == {
            "id": patient.id,
            "name": "Pat Patient",
            "email": patient.email,
            "phone": patient.phone,
            "address": "42 Elm Street",
        }

    def test_patient_is_always_the_caller(self, client, make_user, booking):
        patient, token = make_user()
        other, _ = make_user()

        response = book(client, token, dict(booking, patient=other.id))
        assert response.status_code == 201
        assert response.json()["data"]["patient_id"] == patient.id

    def test_double_booking_rejected(self, client, make_user, booking):
        """A second non-cancelled booking of the same slot fails."""
        _, first = make_user()
        _, second = make_user()

        assert book(client, first, booking).status_code == 201

        response = book(client, second, booking)
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "This appointment slot is already booked",
        }

    def test_same_time_other_day_is_free(self, client, make_user, booking):
        _, token = make_user()

        assert book(client, token, booking).status_code == 201
        assert book(client, token, dict(booking, date="2026-11-03")).status_code == 201

    def test_cancelling_frees_the_slot(self, client, make_user, booking):
        _, first = make_user()
        _, second = make_user()

        appointment_id = book(client, first, booking).json()["data"]["id"]
        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"status": "cancelled"},
            headers=auth_header(first),
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

        assert book(client, second, booking).status_code == 201

    def test_unknown_doctor(self, client, make_user, booking):
        _, token = make_user()

        response = book(client, token, dict(booking, doctor=9999))
        assert response.status_code == 404
        assert response.json()["message"] == "Doctor not found with id of 9999"

    def test_missing_fields(self, client, make_user, booking):
        _, token = make_user()
        payload = {k: v for k, v in booking.items() if k != "reason"}

        response = book(client, token, payload)
        assert response.status_code == 400
        assert "reason" in response.json()["message"]

    def test_requires_token(self, client, booking):
        assert client.post("/api/appointments", json=booking).status_code == 401

    def test_doctor_cannot_book(self, client, make_doctor, booking, multi_role):
        _, _, doctor_token = make_doctor()

        response = book(client, doctor_token, booking)
        assert response.status_code == 403
        assert response.json()["message"] == "User role doctor is not authorized to access this route"


class TestListAppointments:

    def test_patient_sees_only_own(self, client, make_user, make_doctor):
        doctor, _, _ = make_doctor()
        alice, alice_token = make_user()
        _, bob_token = make_user()

        for token, time in ((alice_token, "09:00 AM"), (bob_token, "10:00 AM"), (alice_token, "11:00 AM")):
            assert book(client, token, {
                "doctor": doctor.id, "date": "2026-11-02", "time": time, "reason": "Check",
            }).status_code == 201

        response = client.get("/api/appointments", headers=auth_header(alice_token))
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert {a["patient"]["id"] for a in body["data"]} == {alice.id}
        assert [a["time"] for a in body["data"]] == ["09:00 AM", "11:00 AM"]

    def test_ordered_by_date_then_time_of_day(self, client, make_user, make_doctor):
        doctor, _, _ = make_doctor()
        _, token = make_user()

        for day, time in (
            ("2026-11-03", "09:00 AM"),
            ("2026-11-02", "01:00 PM"),
            ("2026-11-02", "09:00 AM"),
            ("2026-11-02", "12:30 PM"),
        ):
            assert book(client, token, {
                "doctor": doctor.id, "date": day, "time": time, "reason": "Check",
            }).status_code == 201

        data = client.get("/api/appointments", headers=auth_header(token)).json()["data"]
        assert [(a["date"], a["time"]) for a in data] == [
            ("2026-11-02", "09:00 AM"),
            ("2026-11-02", "12:30 PM"),
            ("2026-11-02", "01:00 PM"),
            ("2026-11-03", "09:00 AM"),
        ]

    def test_empty_list(self, client, make_user):
        _, token = make_user()

        response = client.get("/api/appointments", headers=auth_header(token))
        assert response.json() == {"success": True, "count": 0, "data": []}

    def test_doctor_sees_own_profile_appointments(self, client, make_user, make_doctor, multi_role):
        mine, _, doctor_token = make_doctor()
        other, _, _ = make_doctor()
        _, patient_token = make_user()

        book(client, patient_token, {"doctor": mine.id, "date": "2026-11-02", "time": "09:00 AM", "reason": "A"})
        book(client, patient_token, {"doctor": other.id, "date": "2026-11-02", "time": "09:00 AM", "reason": "B"})

        body = client.get("/api/appointments", headers=auth_header(doctor_token)).json()
        assert body["count"] == 1
        assert body["data"][0]["doctor"]["id"] == mine.id

    def test_doctor_without_profile_gets_empty_list(self, client, make_user, multi_role):
        _, token = make_user(UserRole.DOCTOR)

        response = client.get("/api/appointments", headers=auth_header(token))
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 0
        assert body["data"] == []
        assert body["message"] == "No doctor profile found. Please create your doctor profile first."

    def test_admin_sees_all(self, client, make_user, make_doctor, multi_role):
        doctor, _, _ = make_doctor()
        _, first = make_user()
        _, second = make_user()
        _, admin_token = make_user(UserRole.ADMIN)

        book(client, first, {"doctor": doctor.id, "date": "2026-11-02", "time": "09:00 AM", "reason": "A"})
        book(client, second, {"doctor": doctor.id, "date": "2026-11-02", "time": "10:00 AM", "reason": "B"})

        body = client.get("/api/appointments", headers=auth_header(admin_token)).json()
        assert body["count"] == 2


class TestGetAppointment:

    def test_not_found(self, client, make_user):
        _, token = make_user()

        response = client.get("/api/appointments/123", headers=auth_header(token))
        assert response.status_code == 404
        assert response.json()["message"] == "Appointment not found with id of 123"

    def test_other_patient_forbidden(self, client, make_user, booking):
        _, owner = make_user()
        _, stranger = make_user()
        appointment_id = book(client, owner, booking).json()["data"]["id"]

        response = client.get(f"/api/appointments/{appointment_id}", headers=auth_header(stranger))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to access this appointment"

    def test_assigned_doctor_can_read(self, client, make_user, make_doctor, multi_role):
        doctor, _, doctor_token = make_doctor()
        _, other_doctor_token = make_doctor()[1:]
        _, patient_token = make_user()

        appointment_id = book(client, patient_token, {
            "doctor": doctor.id, "date": "2026-11-02", "time": "09:00 AM", "reason": "A",
        }).json()["data"]["id"]

        ok = client.get(f"/api/appointments/{appointment_id}", headers=auth_header(doctor_token))
        assert ok.status_code == 200

        denied = client.get(f"/api/appointments/{appointment_id}", headers=auth_header(other_doctor_token))
        assert denied.status_code == 403

    def test_admin_can_read(self, client, make_user, booking, multi_role):
        _, owner = make_user()
        _, admin_token = make_user(UserRole.ADMIN)
        appointment_id = book(client, owner, booking).json()["data"]["id"]

        response = client.get(f"/api/appointments/{appointment_id}", headers=auth_header(admin_token))
        assert response.status_code == 200


class TestUpdateAppointment:

    def test_owner_updates_any_field(self, client, make_user, make_doctor, booking):
        _, token = make_user()
        other_doctor, _, _ = make_doctor()
        appointment_id = book(client, token, booking).json()["data"]["id"]

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"doctor": other_doctor.id, "time": "11:00 AM", "reason": "Follow-up"},
            headers=auth_header(token),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["doctor"]["id"] == other_doctor.id
        assert data["time"] == "11:00 AM"
        assert data["reason"] == "Follow-up"
        assert data["version"] == 2

    def test_patient_field_is_immutable(self, client, make_user, booking):
        _, token = make_user()
        other, _ = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"patient": other.id},
            headers=auth_header(token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot update field(s): patient"

    def test_invalid_status_value(self, client, make_user, booking):
        _, token = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"status": "rescheduled"},
            headers=auth_header(token),
        )
        assert response.status_code == 400
        assert "status" in response.json()["message"]

    def test_null_required_field(self, client, make_user, booking):
        _, token = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"reason": None},
            headers=auth_header(token),
        )
        assert response.status_code == 400

    def test_moving_onto_booked_slot_conflicts(self, client, make_user, booking):
        _, token = make_user()
        book(client, token, booking)
        second_id = book(client, token, dict(booking, time="11:00 AM")).json()["data"]["id"]

        response = client.put(
            f"/api/appointments/{second_id}",
            json={"time": booking["time"]},
            headers=auth_header(token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "This appointment slot is already booked"

    def test_cancelled_appointment_cannot_be_reopened(self, client, make_user, booking):
        _, token = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]
        url = f"/api/appointments/{appointment_id}"

        client.put(url, json={"status": "cancelled"}, headers=auth_header(token))

        response = client.put(url, json={"status": "pending"}, headers=auth_header(token))
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot change status of a cancelled appointment"

    def test_other_patient_forbidden(self, client, make_user, booking):
        _, owner = make_user()
        _, stranger = make_user()
        appointment_id = book(client, owner, booking).json()["data"]["id"]

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"notes": "hijack"},
            headers=auth_header(stranger),
        )
        assert response.status_code == 403

    def test_stale_version_conflicts(self, client, make_user, booking):
        _, token = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]
        url = f"/api/appointments/{appointment_id}"

        fresh = client.put(url, json={"notes": "first"}, headers=dict(auth_header(token), **{"If-Match": "1"}))
        assert fresh.status_code == 200
        assert fresh.json()["data"]["version"] == 2

        stale = client.put(url, json={"notes": "second"}, headers=dict(auth_header(token), **{"If-Match": "1"}))
        assert stale.status_code == 409
        assert stale.json()["success"] is False

        current = client.get(url, headers=auth_header(token)).json()["data"]
        assert current["notes"] == "first"

    def test_malformed_if_match(self, client, make_user, booking):
        _, token = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"notes": "x"},
            headers=dict(auth_header(token), **{"If-Match": "abc"}),
        )
        assert response.status_code == 400


class TestDoctorUpdates:

    @pytest.fixture
    def doctor_appointment(self, client, make_user, make_doctor, multi_role):
        doctor, _, doctor_token = make_doctor()
        _, patient_token = make_user()
        appointment_id = book(client, patient_token, {
            "doctor": doctor.id, "date": "2026-11-02", "time": "09:00 AM", "reason": "Checkup",
        }).json()["data"]["id"]
        return appointment_id, doctor_token

    def test_doctor_updates_status_and_notes(self, client, doctor_appointment):
        appointment_id, doctor_token = doctor_appointment

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"status": "confirmed", "notes": "Bring previous results"},
            headers=auth_header(doctor_token),
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "confirmed"
        assert response.json()["data"]["notes"] == "Bring previous results"

    @pytest.mark.parametrize("extra", [
        {"date": "2026-12-01"},
        {"reason": "Other"},
        {"patient": 1},
        {"date": "not-a-date"},
        {"reason": None},
        {"doctor": "nobody", "status": "rescheduled"},
    ])
    def test_doctor_other_fields_rejected_wholesale(self, client, doctor_appointment, extra):
        appointment_id, doctor_token = doctor_appointment
        url = f"/api/appointments/{appointment_id}"

        response = client.put(
            url,
            json=dict({"status": "confirmed"}, **extra),
            headers=auth_header(doctor_token),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Doctors can only update: status, notes"

        current = client.get(url, headers=auth_header(doctor_token)).json()["data"]
        assert current["status"] == "pending"
        assert current["version"] == 1

    def test_unassigned_doctor_forbidden(self, client, make_doctor, doctor_appointment):
        appointment_id, _ = doctor_appointment
        _, _, stranger_token = make_doctor()

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"status": "confirmed"},
            headers=auth_header(stranger_token),
        )
        assert response.status_code == 403

    def test_doctor_without_profile(self, client, make_user, doctor_appointment):
        appointment_id, _ = doctor_appointment
        _, token = make_user(UserRole.DOCTOR)

        response = client.put(
            f"/api/appointments/{appointment_id}",
            json={"status": "confirmed"},
            headers=auth_header(token),
        )
        assert response.status_code == 404

    def test_doctor_cannot_delete(self, client, doctor_appointment):
        appointment_id, doctor_token = doctor_appointment

        response = client.delete(f"/api/appointments/{appointment_id}", headers=auth_header(doctor_token))
        assert response.status_code == 403


class TestDeleteAppointment:

    def test_owner_deletes(self, client, make_user, booking):
        _, token = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]

        response = client.delete(f"/api/appointments/{appointment_id}", headers=auth_header(token))
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {}}

        assert client.get(f"/api/appointments/{appointment_id}", headers=auth_header(token)).status_code == 404

    def test_non_owner_patient_forbidden(self, client, make_user, booking, db_session):
        _, owner = make_user()
        _, stranger = make_user()
        appointment_id = book(client, owner, booking).json()["data"]["id"]

        response = client.delete(f"/api/appointments/{appointment_id}", headers=auth_header(stranger))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to delete this appointment"

        assert db_session.get(Appointment, appointment_id) is not None

    def test_admin_deletes(self, client, make_user, booking, multi_role):
        _, owner = make_user()
        _, admin_token = make_user(UserRole.ADMIN)
        appointment_id = book(client, owner, booking).json()["data"]["id"]

        response = client.delete(f"/api/appointments/{appointment_id}", headers=auth_header(admin_token))
        assert response.status_code == 200

    def test_delete_with_stale_version(self, client, make_user, booking):
        _, token = make_user()
        appointment_id = book(client, token, booking).json()["data"]["id"]

        response = client.delete(
            f"/api/appointments/{appointment_id}",
            headers=dict(auth_header(token), **{"If-Match": "7"}),
        )
        assert response.status_code == 409

    def test_delete_missing(self, client, make_user):
        _, token = make_user()

        response = client.delete("/api/appointments/555", headers=auth_header(token))
        assert response.status_code == 404
