import pytest
from pydantic import ValidationError

from edumeet.models.appointment import Appointment
from edumeet.models.notification import Notification
from edumeet.routes.appointment_routes import AppointmentRequest, AppointmentUpdateRequest


def request_payload(teacher_id: int, **overrides) -> dict:
    payload = {
        'teacher_id': teacher_id,
        'day': 'Monday',
        'time': '2:00 PM',
        'date': '2026-01-05',
        'student': {
            'name': 'Sam Student',
            'email': 'sam@example.com',
            'subject': 'Algebra',
        },
    }
    payload.update(overrides)
    return payload


def test_appointment_request_normalizes_slot_and_student_fields() -> None:
    request = AppointmentRequest(
        teacher_id=1,
        day=' monday ',
        time='14:00',
        date='2026-01-05',
        student={'name': '  Sam Student ', 'email': ' SAM@EXAMPLE.COM ', 'phone': '   '},
    )

    assert request.day == 'Monday'
    assert request.time == '2:00 PM'
    assert request.student.name == 'Sam Student'
    assert request.student.email == 'sam@example.com'
    assert request.student.phone is None


def test_appointment_update_request_rejects_status_field() -> None:
    with pytest.raises(ValidationError):
        AppointmentUpdateRequest(status='confirmed')


def test_request_appointment_without_login_creates_pending_request(client, make_teacher) -> None:
    teacher = make_teacher()

    response = client.post('/appointments/request', json=request_payload(teacher.id))

    assert response.status_code == 201
    body = response.json()
    assert body['message'] == 'Appointment request sent to teacher successfully'
    assert body['appointment']['status'] == 'pending'
    assert body['appointment']['created_by'] == 'student'
    assert body['appointment']['student']['email'] == 'sam@example.com'
    assert body['appointment']['student_id'] is None


def test_request_appointment_links_logged_in_student(client, make_teacher, make_student, headers_for) -> None:
    teacher = make_teacher()
    student = make_student()

    response = client.post('/appointments/request', json=request_payload(teacher.id), headers=headers_for(student))

    assert response.status_code == 201
    assert response.json()['appointment']['student_id'] == student.id


def test_request_appointment_rejects_teacher_token(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()

    response = client.post('/appointments/request', json=request_payload(teacher.id), headers=headers_for(teacher))

    assert response.status_code == 403
    assert response.json()['detail'] == 'Only students can request appointments.'


def test_request_appointment_reports_missing_fields(client, make_teacher) -> None:
    teacher = make_teacher()
    payload = request_payload(teacher.id, student={'email': 'sam@example.com'})
    del payload['time']

    response = client.post('/appointments/request', json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body['detail'] == 'Validation failed'
    fields = {error['field'] for error in body['errors']}
    assert fields == {'time', 'student.name'}


def test_request_appointment_reports_invalid_email(client, make_teacher) -> None:
    teacher = make_teacher()
    payload = request_payload(teacher.id, student={'name': 'Sam Student', 'email': 'not-an-email'})

    response = client.post('/appointments/request', json=payload)

    assert response.status_code == 400
    assert response.json()['errors'] == [
        {'field': 'student.email', 'message': 'Please provide a valid email address.'},
    ]


def test_request_appointment_conflicts_with_booked_slot(client, make_teacher) -> None:
    teacher = make_teacher()
    client.post('/appointments/request', json=request_payload(teacher.id))

    response = client.post(
        '/appointments/request',
        json=request_payload(teacher.id, student={'name': 'Other Student', 'email': 'other@example.com'}),
    )

    assert response.status_code == 409
    assert response.json()['detail'] == 'This time slot is already booked or has a pending request.'


def test_request_appointment_returns_not_found_for_unknown_teacher(client) -> None:
    response = client.post('/appointments/request', json=request_payload(404))

    assert response.status_code == 404
    assert response.json()['detail'] == 'Teacher not found.'


def test_teacher_accepts_then_second_accept_conflicts(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    accepted = client.put(
        f'/appointments/{appointment_id}/accept',
        json={'response_message': 'See you then'},
        headers=headers_for(teacher),
    )
    again = client.put(f'/appointments/{appointment_id}/accept', headers=headers_for(teacher))
    fetched = client.get(f'/appointments/{appointment_id}', headers=headers_for(teacher))

    assert accepted.status_code == 200
    assert accepted.json()['message'] == 'Appointment request accepted successfully'
    assert accepted.json()['appointment']['status'] == 'confirmed'
    assert accepted.json()['appointment']['response_message'] == 'See you then'
    assert again.status_code == 409
    assert fetched.json()['status'] == 'confirmed'


def test_teacher_rejects_pending_request(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.put(f'/appointments/{appointment_id}/reject', headers=headers_for(teacher))

    assert response.status_code == 200
    assert response.json()['appointment']['status'] == 'rejected'
    assert response.json()['appointment']['response_message'] == 'Request rejected'


def test_reject_requires_authentication(client, make_teacher) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.put(f'/appointments/{appointment_id}/reject')

    assert response.status_code == 401
    assert response.headers['WWW-Authenticate'] == 'Bearer'


def test_student_cannot_accept(client, make_teacher, make_student, headers_for) -> None:
    teacher = make_teacher()
    student = make_student()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.put(f'/appointments/{appointment_id}/accept', headers=headers_for(student))

    assert response.status_code == 403


def test_student_cancels_confirmed_appointment(client, db, make_teacher, make_student, headers_for) -> None:
    teacher = make_teacher()
    student = make_student()
    appointment_id = client.post(
        '/appointments/request',
        json=request_payload(teacher.id),
        headers=headers_for(student),
    ).json()['appointment']['id']
    client.put(f'/appointments/{appointment_id}/accept', headers=headers_for(teacher))

    response = client.put(
        f'/appointments/{appointment_id}/cancel',
        json={'reason': 'Schedule clash'},
        headers=headers_for(student),
    )

    assert response.status_code == 200
    appointment = response.json()['appointment']
    assert appointment['status'] == 'cancelled'
    assert appointment['cancelled_by'] == 'student'
    assert appointment['cancellation_reason'] == 'Schedule clash'
    assert db.query(Notification).filter(Notification.type == 'appointment_cancelled').count() == 1


def test_cancel_pending_request_conflicts(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.delete(f'/appointments/{appointment_id}', headers=headers_for(teacher))

    assert response.status_code == 409


def test_complete_confirmed_appointment(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']
    client.put(f'/appointments/{appointment_id}/accept', headers=headers_for(teacher))

    response = client.put(
        f'/appointments/{appointment_id}/complete',
        json={'notes': 'Reviewed exercises'},
        headers=headers_for(teacher),
    )

    assert response.status_code == 200
    assert response.json()['appointment']['status'] == 'completed'
    assert response.json()['appointment']['notes'] == 'Reviewed exercises'


def test_update_with_status_field_is_rejected(client, db, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.put(
        f'/appointments/{appointment_id}',
        json={'status': 'confirmed', 'notes': 'Sneaky'},
        headers=headers_for(teacher),
    )

    assert response.status_code == 400
    assert response.json()['errors'][0]['field'] == 'status'
    db.expire_all()
    assert db.get(Appointment, appointment_id).status == 'pending'


def test_update_reschedules_appointment(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.put(
        f'/appointments/{appointment_id}',
        json={'date': '2026-01-06', 'day': 'Tuesday', 'time': '10:00'},
        headers=headers_for(teacher),
    )

    assert response.status_code == 200
    assert response.json()['message'] == 'Appointment updated successfully'
    appointment = response.json()['appointment']
    assert (appointment['date'], appointment['day'], appointment['time']) == ('2026-01-06', 'Tuesday', '10:00 AM')
    assert appointment['status'] == 'pending'


def test_teacher_books_confirmed_appointment(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()

    response = client.post(
        '/appointments/book',
        json={
            'day': 'Monday',
            'time': '3:00 PM',
            'date': '2026-01-05',
            'student': {'name': 'Sam Student', 'email': 'sam@example.com'},
            'notes': 'Exam prep',
        },
        headers=headers_for(teacher),
    )

    assert response.status_code == 201
    appointment = response.json()['appointment']
    assert appointment['status'] == 'confirmed'
    assert appointment['created_by'] == 'teacher'


def test_list_appointments_scopes_to_caller(client, make_teacher, make_student, headers_for) -> None:
    teacher = make_teacher()
    other_teacher = make_teacher(name='Omar Other', email='omar@example.com')
    student = make_student()
    client.post('/appointments/request', json=request_payload(teacher.id))
    client.post('/appointments/request', json=request_payload(other_teacher.id))
    client.post(
        '/appointments/request',
        json=request_payload(teacher.id, time='4:00 PM', student={'name': 'Other Student', 'email': 'other@example.com'}),
    )

    teacher_page = client.get('/appointments', headers=headers_for(teacher)).json()
    student_page = client.get('/appointments', headers=headers_for(student)).json()

    assert teacher_page['total'] == 2
    assert student_page['total'] == 2
    assert {item['teacher_id'] for item in student_page['items']} == {teacher.id, other_teacher.id}


def test_list_appointments_rejects_unknown_status(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()

    response = client.get('/appointments', params={'status': 'booked'}, headers=headers_for(teacher))

    assert response.status_code == 400


def test_teacher_cannot_view_other_teachers_pending_requests(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    other_teacher = make_teacher(name='Omar Other', email='omar@example.com')

    response = client.get(f'/appointments/teacher/{other_teacher.id}/pending', headers=headers_for(teacher))

    assert response.status_code == 403


def test_pending_requests_lists_only_student_requests(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    client.post('/appointments/request', json=request_payload(teacher.id))
    client.post(
        '/appointments/book',
        json={
            'day': 'Monday',
            'time': '4:00 PM',
            'date': '2026-01-05',
            'student': {'name': 'Booked Student', 'email': 'booked@example.com'},
        },
        headers=headers_for(teacher),
    )

    response = client.get(f'/appointments/teacher/{teacher.id}/pending', headers=headers_for(teacher))

    assert response.status_code == 200
    assert [item['student']['email'] for item in response.json()] == ['sam@example.com']


def test_stats_for_teacher(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    client.post('/appointments/request', json=request_payload(teacher.id))

    response = client.get('/appointments/stats', headers=headers_for(teacher))

    assert response.status_code == 200
    assert response.json()['total'] == 1
    assert response.json()['pending_requests'] == 1


def test_get_appointment_hides_other_students_appointments(client, make_teacher, make_student, headers_for) -> None:
    teacher = make_teacher()
    stranger = make_student(name='Stan Stranger', email='stan@example.com')
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.get(f'/appointments/{appointment_id}', headers=headers_for(stranger))

    assert response.status_code == 403


def test_update_changing_day_without_date_is_rejected(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']

    response = client.put(f'/appointments/{appointment_id}', json={'day': 'Tuesday'}, headers=headers_for(teacher))

    assert response.status_code == 400
    assert response.json()['detail'] == 'A date is required when changing the day.'
