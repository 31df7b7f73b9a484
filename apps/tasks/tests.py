import json
from datetime import datetime, time, timedelta
from unittest.mock import patch

from django.test import TestCase, Client
from django.utils import timezone

from apps.identity.jwt_auth import create_access_token
from apps.identity.models import User, UserRole
from apps.realtime.events import TaskEvent
from . import services
from .models import Task, TaskAssignment, TaskStatus
from .tasks import notify_overdue_tasks


class TaskModelTest(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(email="owner@example.com", password="pw")

    def test_completed_at_follows_status(self):
        task = Task.objects.create(title="Ship it", owner=self.owner)
        self.assertIsNone(task.completed_at)

        task.status = TaskStatus.COMPLETED
        task.save()
        self.assertIsNotNone(task.completed_at)

        task.status = TaskStatus.IN_PROGRESS
        task.save()
        self.assertIsNone(task.completed_at)

    def test_derived_values(self):
        task = Task.objects.create(
            title="Late",
            owner=self.owner,
            due_date=timezone.now() - timedelta(hours=2),
            status=TaskStatus.IN_PROGRESS,
        )
        self.assertTrue(task.is_overdue)
        self.assertEqual(task.completion_percentage, 50)
        self.assertEqual(task.days_until_due, 0)

        task.status = TaskStatus.COMPLETED
        self.assertFalse(task.is_overdue)
        self.assertEqual(task.completion_percentage, 100)

        no_due = Task.objects.create(title="Someday", owner=self.owner)
        self.assertIsNone(no_due.days_until_due)
        self.assertFalse(no_due.is_overdue)

    def test_due_soon_and_overdue_queries(self):
        now = timezone.now()
        overdue = Task.objects.create(title="Overdue", owner=self.owner, due_date=now - timedelta(days=1))
        soon = Task.objects.create(title="Soon", owner=self.owner, due_date=now + timedelta(days=2))
        Task.objects.create(title="Later", owner=self.owner, due_date=now + timedelta(days=10))
        Task.objects.create(
            title="Done", owner=self.owner, due_date=now - timedelta(days=1), status=TaskStatus.COMPLETED
        )
        Task.objects.create(title="Archived", owner=self.owner, due_date=now - timedelta(days=1), is_archived=True)

        self.assertEqual([t.id for t in services.find_overdue()], [overdue.id])
        self.assertEqual([t.id for t in services.find_due_soon()], [soon.id])


class TaskAPITestBase(TestCase):
    def setUp(self):
        self.client = Client()
        self.owner = User.objects.create_user(
            email="owner@example.com", password="pw", first_name="Olive", last_name="Owner"
        )
        self.other = User.objects.create_user(email="other@example.com", password="pw")
        self.manager = User.objects.create_user(
            email="manager@example.com", password="pw", role=UserRole.MANAGER
        )
        self.admin = User.objects.create_user(
            email="admin@example.com", password="pw", role=UserRole.ADMIN
        )

        patcher = patch('apps.tasks.api.notify_users')
        self.notify = patcher.start()
        self.addCleanup(patcher.stop)

    def auth(self, user):
        return {'HTTP_AUTHORIZATION': f'Bearer {create_access_token(user.id)}'}

    def get(self, path, user, **params):
        return self.client.get(path, params, **self.auth(user))

    def post(self, path, payload, user):
        return self.client.post(
            path, data=json.dumps(payload), content_type='application/json', **self.auth(user)
        )

    def put(self, path, payload, user):
        return self.client.put(
            path, data=json.dumps(payload), content_type='application/json', **self.auth(user)
        )

    def delete(self, path, user):
        return self.client.delete(path, **self.auth(user))

    def make_task(self, owner=None, **fields):
        fields.setdefault('title', 'Write report')
        return Task.objects.create(owner=owner or self.owner, **fields)


class TaskCrudAPITest(TaskAPITestBase):
    def test_requires_token(self):
        response = self.client.get('/api/tasks')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"success": False, "error": "Access denied. No token provided."})

        response = self.client.get('/api/tasks', HTTP_AUTHORIZATION='Bearer not-a-jwt')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], "Access denied. Invalid token.")

    def test_create_task(self):
        response = self.post('/api/tasks', {
            'title': '  Plan sprint  ',
            'priority': 'high',
            'category': 'work',
            'tags': ['Planning', 'planning', ' Team '],
        }, self.owner)

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['title'], 'Plan sprint')
        self.assertEqual(data['status'], 'todo')
        self.assertEqual(data['priority'], 'high')
        self.assertEqual(data['tags'], ['planning', 'team'])
        self.assertEqual(data['owner']['email'], 'owner@example.com')
        self.assertEqual(data['assignees'], [])
        self.assertEqual(data['completion_percentage'], 0)

        task = Task.objects.get(id=data['id'])
        self.assertEqual(task.created_by, self.owner)
        self.notify.assert_called_once()
        user_ids, event, payload = self.notify.call_args.args
        self.assertEqual(list(user_ids), [self.owner.id])
        self.assertEqual(event, TaskEvent.CREATED)
        self.assertEqual(payload['id'], data['id'])

    def test_create_task_validation(self):
        response = self.post('/api/tasks', {'title': '', 'status': 'someday'}, self.owner)
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['error'], 'Validation failed')
        fields = {d['field'] for d in body['details']}
        self.assertIn('title', fields)
        self.assertIn('status', fields)

    def test_create_task_rejects_long_tag(self):
        response = self.post('/api/tasks', {'title': 'Tagged', 'tags': ['x' * 31]}, self.owner)
        self.assertEqual(response.status_code, 400)

    def test_get_task_access(self):
        task = self.make_task()

        self.assertEqual(self.get(f'/api/tasks/{task.id}', self.owner).status_code, 200)
        self.assertEqual(self.get(f'/api/tasks/{task.id}', self.admin).status_code, 200)

        response = self.get(f'/api/tasks/{task.id}', self.other)
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.json()['success'])

        TaskAssignment.objects.create(task=task, user=self.other, assigned_by=self.owner)
        self.assertEqual(self.get(f'/api/tasks/{task.id}', self.other).status_code, 200)

    def test_get_missing_task(self):
        response = self.get('/api/tasks/00000000-0000-0000-0000-000000000000', self.owner)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"success": False, "error": "Task not found"})

    def test_update_task(self):
        task = self.make_task(due_date=timezone.now() + timedelta(days=1))

        response = self.put(f'/api/tasks/{task.id}', {'status': 'completed'}, self.owner)
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'completed')
        self.assertEqual(data['title'], 'Write report')
        self.assertIsNotNone(data['completed_at'])
        self.assertEqual(data['completion_percentage'], 100)

        response = self.put(f'/api/tasks/{task.id}', {'due_date': None}, self.owner)
        self.assertIsNone(response.json()['due_date'])

        task.refresh_from_db()
        self.assertEqual(task.last_modified_by, self.owner)
        self.assertEqual(self.notify.call_args.args[1], TaskEvent.UPDATED)

    def test_update_permissions(self):
        task = self.make_task()

        self.assertEqual(self.put(f'/api/tasks/{task.id}', {'title': 'x'}, self.other).status_code, 403)
        self.assertEqual(self.put(f'/api/tasks/{task.id}', {'title': 'By manager'}, self.manager).status_code, 200)

        # Assignees can view but not edit
        TaskAssignment.objects.create(task=task, user=self.other)
        self.assertEqual(self.put(f'/api/tasks/{task.id}', {'title': 'x'}, self.other).status_code, 403)

    def test_delete_task(self):
        task = self.make_task()
        TaskAssignment.objects.create(task=task, user=self.other)

        self.assertEqual(self.delete(f'/api/tasks/{task.id}', self.manager).status_code, 403)
        self.assertEqual(self.delete(f'/api/tasks/{task.id}', self.other).status_code, 403)

        response = self.delete(f'/api/tasks/{task.id}', self.owner)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "message": "Task deleted successfully"})
        self.assertFalse(Task.objects.filter(id=task.id).exists())

        user_ids, event, payload = self.notify.call_args.args
        self.assertEqual(set(user_ids), {self.owner.id, self.other.id})
        self.assertEqual(event, TaskEvent.DELETED)
        self.assertEqual(payload, {"task_id": str(task.id)})

    def test_admin_can_delete_any_task(self):
        task = self.make_task()
        self.assertEqual(self.delete(f'/api/tasks/{task.id}', self.admin).status_code, 200)


class TaskListAPITest(TaskAPITestBase):
    def test_list_is_scoped_to_owned_and_assigned(self):
        mine = self.make_task(title="Mine")
        assigned = self.make_task(owner=self.other, title="Assigned")
        self.make_task(owner=self.other, title="Not mine")
        self.make_task(title="Archived", is_archived=True)
        TaskAssignment.objects.create(task=assigned, user=self.owner)

        response = self.get('/api/tasks', self.owner)
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual({t['id'] for t in data['tasks']}, {str(mine.id), str(assigned.id)})
        self.assertEqual(data['pagination'], {"current": 1, "pages": 1, "total": 2})

        response = self.get('/api/tasks', self.admin)
        self.assertEqual(response.json()['pagination']['total'], 3)

    def test_filters(self):
        self.make_task(title="Quarterly budget", priority='high', category='work')
        self.make_task(title="Groceries", description="milk and BUDGET snacks", category='personal')
        self.make_task(title="Gym", status=TaskStatus.COMPLETED, category='health')

        data = self.get('/api/tasks', self.owner, priority='high').json()
        self.assertEqual([t['title'] for t in data['tasks']], ['Quarterly budget'])

        data = self.get('/api/tasks', self.owner, status='completed').json()
        self.assertEqual([t['title'] for t in data['tasks']], ['Gym'])

        data = self.get('/api/tasks', self.owner, category='personal').json()
        self.assertEqual([t['title'] for t in data['tasks']], ['Groceries'])

        data = self.get('/api/tasks', self.owner, search='budget', sort_by='title', sort_order='asc').json()
        self.assertEqual([t['title'] for t in data['tasks']], ['Groceries', 'Quarterly budget'])

    def test_search_matches_individual_tags(self):
        self.make_task(title="A", tags=["urgent-fix"])
        self.make_task(title="B", tags=["café"])
        self.make_task(title="C", tags=[])

        def titles(search):
            data = self.get('/api/tasks', self.owner, search=search, sort_by='title', sort_order='asc').json()
            return [t['title'] for t in data['tasks']]

        self.assertEqual(titles('URGENT'), ['A'])
        self.assertEqual(titles('café'), ['B'])
        self.assertEqual(titles('"'), [])
        self.assertEqual(titles('['), [])

    def test_tags_text_follows_tags(self):
        task = self.make_task(tags=["Home", "errands"])
        self.assertEqual(task.tags_text, "home\nerrands")

        self.put(f'/api/tasks/{task.id}', {'tags': ['garden']}, self.owner)
        task.refresh_from_db()
        self.assertEqual(task.tags_text, "garden")

    def test_due_date_filter(self):
        today = timezone.localdate()
        noon = timezone.make_aware(datetime.combine(today, time(12, 0)))
        self.make_task(title="Today", due_date=noon)
        self.make_task(title="Tomorrow", due_date=noon + timedelta(days=1))

        data = self.get('/api/tasks', self.owner, due_date=today.isoformat()).json()
        self.assertEqual([t['title'] for t in data['tasks']], ['Today'])

    def test_sort_by_priority(self):
        for title, priority in [("a", 'medium'), ("b", 'urgent'), ("c", 'low'), ("d", 'high')]:
            self.make_task(title=title, priority=priority)

        data = self.get('/api/tasks', self.owner, sort_by='priority', sort_order='desc').json()
        self.assertEqual([t['priority'] for t in data['tasks']], ['urgent', 'high', 'medium', 'low'])

        data = self.get('/api/tasks', self.owner, sort_by='priority', sort_order='asc').json()
        self.assertEqual([t['priority'] for t in data['tasks']], ['low', 'medium', 'high', 'urgent'])

    def test_pagination(self):
        for i in range(3):
            self.make_task(title=f"Task {i}")

        data = self.get('/api/tasks', self.owner, page=2, limit=2).json()
        self.assertEqual(len(data['tasks']), 1)
        self.assertEqual(data['pagination'], {"current": 2, "pages": 2, "total": 3})

        data = self.get('/api/tasks', self.owner, limit=500).json()
        self.assertEqual(len(data['tasks']), 3)

    def test_stats(self):
        now = timezone.now()
        self.make_task(status=TaskStatus.PENDING, due_date=now - timedelta(days=1))
        self.make_task(status=TaskStatus.IN_PROGRESS)
        self.make_task(status=TaskStatus.COMPLETED, due_date=now - timedelta(days=1))
        self.make_task(status=TaskStatus.CANCELLED)
        self.make_task(owner=self.other, status=TaskStatus.PENDING)

        response = self.get('/api/tasks/stats', self.owner)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            "total": 4,
            "pending": 1,
            "in_progress": 1,
            "completed": 1,
            "cancelled": 1,
            "overdue": 1,
        })


class CommentAndAssignmentAPITest(TaskAPITestBase):
    def test_add_comment(self):
        task = self.make_task()

        response = self.post(f'/api/tasks/{task.id}/comments', {'content': '  Looks good  '}, self.owner)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['content'], 'Looks good')
        self.assertEqual(response.json()['author']['email'], 'owner@example.com')

        _, event, payload = self.notify.call_args.args
        self.assertEqual(event, TaskEvent.COMMENT_ADDED)
        self.assertEqual(payload['task_id'], str(task.id))
        self.assertEqual(payload['comment']['content'], 'Looks good')

        detail = self.get(f'/api/tasks/{task.id}', self.owner).json()
        self.assertEqual(len(detail['comments']), 1)

    def test_comment_requires_access(self):
        task = self.make_task()
        response = self.post(f'/api/tasks/{task.id}/comments', {'content': 'Hi'}, self.other)
        self.assertEqual(response.status_code, 403)

        response = self.post(f'/api/tasks/{task.id}/comments', {'content': ''}, self.owner)
        self.assertEqual(response.status_code, 400)

    def test_assign_requires_assign_permission(self):
        task = self.make_task()
        response = self.post(f'/api/tasks/{task.id}/assign', {'user_id': str(self.other.id)}, self.owner)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error'], "Access denied. Insufficient permissions.")

    def test_manager_assigns_user(self):
        task = self.make_task()
        path = f'/api/tasks/{task.id}/assign'

        response = self.post(path, {'user_id': str(self.other.id)}, self.manager)
        self.assertEqual(response.status_code, 200)
        assignees = response.json()['assignees']
        self.assertEqual(len(assignees), 1)
        self.assertEqual(assignees[0]['user']['id'], str(self.other.id))
        self.assertEqual(assignees[0]['assigned_by']['id'], str(self.manager.id))

        user_ids, event, _ = self.notify.call_args.args
        self.assertEqual(list(user_ids), [self.other.id])
        self.assertEqual(event, TaskEvent.ASSIGNED)

        # Assigning again is a no-op
        self.post(path, {'user_id': str(self.other.id)}, self.manager)
        self.assertEqual(TaskAssignment.objects.filter(task=task).count(), 1)

        # The assignee now sees the task
        data = self.get('/api/tasks', self.other).json()
        self.assertEqual([t['id'] for t in data['tasks']], [str(task.id)])

    def test_assign_unknown_user_or_task(self):
        task = self.make_task()
        response = self.post(
            f'/api/tasks/{task.id}/assign',
            {'user_id': '00000000-0000-0000-0000-000000000000'},
            self.admin,
        )
        self.assertEqual(response.status_code, 404)

        response = self.post(
            '/api/tasks/00000000-0000-0000-0000-000000000000/assign',
            {'user_id': str(self.other.id)},
            self.admin,
        )
        self.assertEqual(response.status_code, 404)

    def test_unassign_user(self):
        task = self.make_task()
        TaskAssignment.objects.create(task=task, user=self.other)

        response = self.delete(f'/api/tasks/{task.id}/assign/{self.other.id}', self.manager)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['assignees'], [])
        self.assertFalse(TaskAssignment.objects.filter(task=task).exists())

        user_ids, event, _ = self.notify.call_args.args
        self.assertIn(self.other.id, list(user_ids))
        self.assertEqual(event, TaskEvent.UPDATED)

        response = self.delete(f'/api/tasks/{task.id}/assign/{self.other.id}', self.manager)
        self.assertEqual(response.status_code, 404)


class OverdueJobTest(TestCase):
    @patch('apps.tasks.tasks.notify_users')
    def test_notifies_owners_of_overdue_tasks(self, notify):
        owner = User.objects.create_user(email="late@example.com", password="pw")
        task = Task.objects.create(title="Late", owner=owner, due_date=timezone.now() - timedelta(hours=1))
        Task.objects.create(title="Fine", owner=owner, due_date=timezone.now() + timedelta(days=1))

        self.assertEqual(notify_overdue_tasks(), 1)
        user_ids, event, payload = notify.call_args.args
        self.assertEqual(user_ids, [owner.id])
        self.assertEqual(event, TaskEvent.OVERDUE)
        self.assertEqual(payload['task_id'], str(task.id))

    @patch('apps.tasks.tasks.notify_users')
    def test_nothing_overdue(self, notify):
        self.assertEqual(notify_overdue_tasks(), 0)
        notify.assert_not_called()
