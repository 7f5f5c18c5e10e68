def request_payload(teacher_id: int) -> dict:
    return {
        'teacher_id': teacher_id,
        'day': 'Monday',
        'time': '2:00 PM',
        'date': '2026-01-05',
        'student': {'name': 'Sam Student', 'email': 'sam@example.com'},
    }


def test_teacher_sees_request_notification(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    client.post('/appointments/request', json=request_payload(teacher.id))

    response = client.get('/notifications', headers=headers_for(teacher))

    assert response.status_code == 200
    body = response.json()
    assert body['unread_count'] == 1
    assert body['notifications'][0]['type'] == 'appointment_request'


def test_student_sees_confirmation_by_email(client, make_teacher, make_student, headers_for) -> None:
    teacher = make_teacher()
    student = make_student()
    appointment_id = client.post('/appointments/request', json=request_payload(teacher.id)).json()['appointment']['id']
    client.put(f'/appointments/{appointment_id}/accept', headers=headers_for(teacher))

    response = client.get('/notifications', headers=headers_for(student))

    assert [notification['type'] for notification in response.json()['notifications']] == ['appointment_confirmed']


def test_mark_notification_read(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    client.post('/appointments/request', json=request_payload(teacher.id))
    notification_id = client.get('/notifications', headers=headers_for(teacher)).json()['notifications'][0]['id']

    response = client.put(f'/notifications/{notification_id}/read', headers=headers_for(teacher))

    assert response.status_code == 200
    assert response.json()['read'] is True
    assert client.get('/notifications', headers=headers_for(teacher)).json()['unread_count'] == 0


def test_cannot_mark_someone_elses_notification(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    other = make_teacher(name='Omar Other', email='omar@example.com')
    client.post('/appointments/request', json=request_payload(teacher.id))
    notification_id = client.get('/notifications', headers=headers_for(teacher)).json()['notifications'][0]['id']

    response = client.put(f'/notifications/{notification_id}/read', headers=headers_for(other))

    assert response.status_code == 404


def test_mark_all_read(client, make_teacher, headers_for) -> None:
    teacher = make_teacher()
    client.post('/appointments/request', json=request_payload(teacher.id))

    response = client.put('/notifications/read-all', headers=headers_for(teacher))

    assert response.json()['message'] == 'All notifications marked as read'
    assert client.get('/notifications', headers=headers_for(teacher)).json()['unread_count'] == 0


def test_admin_has_no_notifications(client, make_admin, headers_for) -> None:
    response = client.get('/notifications', headers=headers_for(make_admin()))

    assert response.status_code == 403


def test_deleted_students_notifications_do_not_reach_next_registrant(client, make_admin, make_teacher, headers_for) -> None:
    admin = make_admin()
    teacher = make_teacher()
    alice = client.post(
        '/auth/register',
        json={'name': 'Alice Student', 'email': 'alice@example.com', 'password': 'Passw0rd'},
    ).json()
    alice_headers = {'Authorization': f"Bearer {alice['access_token']}"}
    payload = {**request_payload(teacher.id), 'student': {'name': 'Alice Student', 'email': 'alice@example.com'}}
    appointment_id = client.post('/appointments/request', json=payload, headers=alice_headers).json()['appointment']['id']
    client.put(f'/appointments/{appointment_id}/accept', headers=headers_for(teacher))
    client.delete(f"/admin/users/{alice['user']['id']}", headers=headers_for(admin))

    bob = client.post(
        '/auth/register',
        json={'name': 'Bob Student', 'email': 'bob@example.com', 'password': 'Passw0rd'},
    ).json()
    response = client.get('/notifications', headers={'Authorization': f"Bearer {bob['access_token']}"})

    assert response.status_code == 200
    assert response.json() == {'notifications': [], 'unread_count': 0}
