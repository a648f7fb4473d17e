import pytest

from core.database_models import db, FinancialGoal, GoalExpense, GoalFundingSource

GOAL = {
    'title': 'Junior Year at State',
    'description': 'Tuition and housing for <em>junior</em> year',
    'goalType': 'education',
    'targetAmount': '32000.00',
    'currentAmount': '4000.00',
    'deadline': '2031-08-15T00:00:00',
    'priority': 'high',
    'calculationMethod': 'template_based',
    'residencyStatus': 'in_state',
    'schoolType': 'public',
    'estimatedEFC': 6500,
    'pellEligible': True,
    'expenses': [
        {'name': 'Tuition (In-State)', 'amount': '14000.00', 'frequency': 'annual'},
        {'name': 'Dorm Housing', 'amount': '12000.00', 'frequency': 'annual'},
    ],
    'fundingSources': [
        {'sourceName': 'Family Contribution', 'sourceType': 'family', 'amount': '6000.00',
         'probabilityPercentage': 100},
        {'sourceName': 'Pell Grant', 'sourceType': 'federal_grant', 'amount': '7000.00'},
    ],
}


@pytest.fixture
def goal_id(student):
    r = student.post('/api/financial-goals', json=GOAL)
    assert r.status_code == 201, r.get_json()
    return r.get_json()['data']['id']


def test_create_goal_with_children(student) -> None:
    r = student.post('/api/financial-goals', json=GOAL)
    assert r.status_code == 201
    body = r.get_json()
    assert body['success'] is True

    goal = body['data']
    assert goal['title'] == 'Junior Year at State'
    assert goal['description'] == 'Tuition and housing for junior year'
    assert goal['targetAmount'] == 32000
    assert goal['status'] == 'active'
    assert goal['priority'] == 'high'
    assert goal['estimatedEFC'] == 6500
    assert goal['pellEligible'] is True
    assert goal['targetCountry'] == 'United States'
    assert goal['termsPerYear'] == 2
    assert [e['name'] for e in goal['expenses']] == ['Tuition (In-State)', 'Dorm Housing']
    assert [s['sourceName'] for s in goal['fundingSources']] == ['Family Contribution', 'Pell Grant']
    assert goal['fundingSources'][1]['probabilityPercentage'] == 50
    assert goal['fundingSources'][1]['applicationStatus'] == 'not_applied'


def test_create_goal_from_template_reports_typical_range(student) -> None:
    r = student.post('/api/financial-goals', json=dict(GOAL, createdViaTemplate='tuition-annual'))
    assert r.status_code == 201
    body = r.get_json()
    assert body['data']['createdViaTemplate'] == 'tuition-annual'
    assert body['templateInsights'] == {
        'template': 'tuition-annual',
        'warnings': ['Target amount (32000) is below typical range (35000 - 50000)'],
        'suggestions': ['Applied template: Annual Tuition & Fees'],
    }

    r = student.post('/api/financial-goals', json={
        'title': 'Dorm and Meals', 'targetAmount': 18000, 'createdViaTemplate': 'room-board-annual'
    })
    assert r.get_json()['templateInsights']['warnings'] == []


def test_create_goal_without_known_template_has_no_insights(student) -> None:
    assert 'templateInsights' not in student.post('/api/financial-goals', json=GOAL).get_json()

    r = student.post('/api/financial-goals', json=dict(GOAL, createdViaTemplate='my-own-plan'))
    assert r.status_code == 201
    assert 'templateInsights' not in r.get_json()


def test_create_goal_defaults(student) -> None:
    r = student.post('/api/financial-goals', json={'title': 'Emergency Fund', 'targetAmount': 2500})
    goal = r.get_json()['data']
    assert goal['goalType'] == 'education'
    assert goal['priority'] == 'medium'
    assert goal['calculationMethod'] == 'manual_entry'
    assert goal['currentAmount'] == 0
    assert goal['expenses'] == []
    assert goal['fundingSources'] == []


def test_invalid_child_rejects_whole_goal(app, student) -> None:
    payload = dict(GOAL, fundingSources=[
        {'sourceName': 'Loan', 'sourceType': 'federal_loan', 'amount': '100.00', 'probabilityPercentage': 150}
    ])
    r = student.post('/api/financial-goals', json=payload)
    assert r.status_code == 400
    fields = [issue['field'] for issue in r.get_json()['validationIssues']['errors']]
    assert fields == ['fundingSources.0.probabilityPercentage']

    with app.app_context():
        assert db.session.query(FinancialGoal).count() == 0
        assert db.session.query(GoalExpense).count() == 0


@pytest.mark.parametrize(
    'field, value',
    [
        ('targetAmount', '-1'),
        ('targetAmount', 0),
        ('targetAmount', '1000000.01'),
        ('creditHoursPerTerm', 31),
        ('termsPerYear', 5),
        ('programDurationYears', 10.5),
        ('estimatedEFC', 100000),
        ('goalType', 'vacation'),
        ('priority', 'urgent'),
        ('title', ''),
    ],
)
def test_create_goal_validation(student, field, value) -> None:
    r = student.post('/api/financial-goals', json=dict(GOAL, **{field: value}))
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Validation failed'


def test_create_goal_reports_every_out_of_range_field(app, student) -> None:
    r = student.post('/api/financial-goals', json=dict(
        GOAL, targetAmount=0, creditHoursPerTerm=500, termsPerYear=12,
        estimatedEFC=5000000, programDurationYears=50,
    ))
    assert r.status_code == 400
    fields = sorted(issue['field'] for issue in r.get_json()['validationIssues']['errors'])
    assert fields == [
        'creditHoursPerTerm', 'estimatedEFC', 'programDurationYears', 'targetAmount', 'termsPerYear',
    ]

    with app.app_context():
        assert db.session.query(FinancialGoal).count() == 0


def test_create_goal_accepts_upper_bounds(student) -> None:
    r = student.post('/api/financial-goals', json=dict(
        GOAL, targetAmount=1000000, creditHoursPerTerm=30, termsPerYear=4,
        estimatedEFC=99999, programDurationYears=10,
    ))
    assert r.status_code == 201
    goal = r.get_json()['data']
    assert goal['targetAmount'] == 1000000
    assert goal['creditHoursPerTerm'] == 30


def test_update_goal_rejects_zero_target(student, goal_id) -> None:
    r = student.put(f'/api/financial-goals/{goal_id}', json={'targetAmount': 0})
    assert r.status_code == 400
    assert r.get_json()['validationIssues']['errors'][0]['field'] == 'targetAmount'


def test_list_goals_with_summary_and_filters(student, goal_id) -> None:
    student.post('/api/financial-goals', json={
        'title': 'Laptop', 'targetAmount': '1500', 'currentAmount': '500', 'goalType': 'career',
        'status': 'paused',
    })

    data = student.get('/api/financial-goals').get_json()['data']
    assert len(data['goals']) == 2
    assert 'expenses' not in data['goals'][0]
    assert data['summary'] == {
        'totalGoals': 2,
        'totalTargetAmount': 33500,
        'totalCurrentAmount': 4500,
        'fundingGap': 29000,
        'completionPercentage': pytest.approx(4500 / 33500 * 100),
    }

    data = student.get('/api/financial-goals?status=active&includeExpenses=true').get_json()['data']
    assert [g['id'] for g in data['goals']] == [goal_id]
    assert len(data['goals'][0]['expenses']) == 2
    assert 'fundingSources' not in data['goals'][0]

    data = student.get('/api/financial-goals?type=career').get_json()['data']
    assert [g['title'] for g in data['goals']] == ['Laptop']


def test_list_goals_rejects_unknown_filter(student) -> None:
    r = student.get('/api/financial-goals?status=archived')
    assert r.status_code == 400
    assert r.get_json()['validationIssues']['errors'][0]['field'] == 'status'


def test_get_goal_is_scoped_to_owner(make_client, student, goal_id) -> None:
    assert student.get(f'/api/financial-goals/{goal_id}').status_code == 200

    other = make_client(email='other@stp.com')
    r = other.get(f'/api/financial-goals/{goal_id}')
    assert r.status_code == 404
    assert r.get_json() == {'error': 'Financial goal not found'}


def test_update_goal_partially(student, goal_id) -> None:
    r = student.put(f'/api/financial-goals/{goal_id}', json={'currentAmount': '9000', 'status': 'under_review'})
    goal = r.get_json()['data']
    assert goal['currentAmount'] == 9000
    assert goal['status'] == 'under_review'
    assert goal['title'] == 'Junior Year at State'
    assert len(goal['expenses']) == 2


def test_update_goal_replaces_child_lists(app, student, goal_id) -> None:
    r = student.put(f'/api/financial-goals/{goal_id}', json={
        'expenses': [{'name': 'Textbooks', 'amount': '900'}],
    })
    goal = r.get_json()['data']
    assert [e['name'] for e in goal['expenses']] == ['Textbooks']
    assert len(goal['fundingSources']) == 2

    with app.app_context():
        assert db.session.query(GoalExpense).count() == 1


def test_delete_goal_removes_children(app, student, goal_id) -> None:
    r = student.delete(f'/api/financial-goals/{goal_id}')
    assert r.status_code == 200
    assert student.get(f'/api/financial-goals/{goal_id}').status_code == 404

    with app.app_context():
        assert db.session.query(GoalExpense).count() == 0
        assert db.session.query(GoalFundingSource).count() == 0


def test_goal_analytics(student, goal_id) -> None:
    r = student.get('/api/financial-goals/analytics')
    assert r.status_code == 200
    metrics = r.get_json()['data']

    assert metrics['totalTargetAmount'] == 32000
    # No scholarships won; the family source counts toward current funding
    assert metrics['totalCurrentAmount'] == 6000
    assert metrics['totalFundingGap'] == 26000
    assert metrics['riskLevel'] == 'critical'
    assert metrics['expenseBreakdown']['tuition'] == 14000
    assert metrics['expenseBreakdown']['roomAndBoard'] == 12000
    assert metrics['fundingBreakdown']['federalAid'] == 7000
    assert metrics['fundingBreakdown']['familyContribution'] == 6000


def test_goals_require_session(client) -> None:
    assert client.get('/api/financial-goals').status_code == 401
    assert client.post('/api/financial-goals', json=GOAL).status_code == 401
