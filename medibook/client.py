"""
HTTP client for the MediBook API.

The bearer token is an argument of every authenticated call; the client
never stores it, so one client can serve several users at once.
"""
from datetime import date
from typing import Any, Dict, Optional, Union

import httpx


class ApiError(Exception):
    """A non-successful API response."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class MediBookClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MediBookClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        request_headers = dict(headers or {})
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        response = self._client.request(method, path, headers=request_headers, **kwargs)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error or not payload.get("success", False):
            raise ApiError(
                response.status_code,
                payload.get("message") or response.reason_phrase,
            )
        return payload

    # Authentication
    def register(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/register", json={
            "name": name,
            "email": email,
            "password": password,
            "phone": phone,
            "address": address,
        })

    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/login", json={"email": email, "password": password})

    def me(self, token: str) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/me", token=token)["data"]

    def logout(self, token: str) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/logout", token=token)

    # Doctors
    def list_doctors(self, specialization: Optional[str] = None) -> list:
        params = {"specialization": specialization} if specialization else None
        return self._request("GET", "/api/doctors", params=params)["data"]

    def get_doctor(self, doctor_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/doctors/{doctor_id}")["data"]

    # Appointments
    def list_appointments(self, token: str) -> Dict[str, Any]:
        return self._request("GET", "/api/appointments", token=token)

    def get_appointment(self, token: str, appointment_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/appointments/{appointment_id}", token=token)["data"]

    def book_appointment(
        self,
        token: str,
        doctor: int,
        day: Union[date, str],
        time: str,
        reason: str,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {
            "doctor": doctor,
            "date": day.isoformat() if isinstance(day, date) else day,
            "time": time,
            "reason": reason,
        }
        if notes is not None:
            body["notes"] = notes
        return self._request("POST", "/api/appointments", token=token, json=body)["data"]

    def update_appointment(
        self,
        token: str,
        appointment_id: int,
        changes: Dict[str, Any],
        version: Optional[int] = None,
    ) -> Dict[str, Any]:
        headers = {"If-Match": str(version)} if version is not None else None
        return self._request(
            "PUT", f"/api/appointments/{appointment_id}",
            token=token, headers=headers, json=changes,
        )["data"]

    def cancel_appointment(self, token: str, appointment_id: int) -> Dict[str, Any]:
        return self.update_appointment(token, appointment_id, {"status": "cancelled"})

    def delete_appointment(
        self,
        token: str,
        appointment_id: int,
        version: Optional[int] = None,
    ) -> None:
        headers = {"If-Match": str(version)} if version is not None else None
        self._request("DELETE", f"/api/appointments/{appointment_id}", token=token, headers=headers)
