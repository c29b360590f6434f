from locust import HttpUser, task, between
import random
import string


TEAM_SIZE = 6


class PRReviewerUser(HttpUser):
    wait_time = between(0.5, 2.0)

    def on_start(self):
        """Своя команда и несколько открытых PR на каждого виртуального пользователя"""
        self.team_name = f"team_{self._generate_id()}"
        self.user_ids = [f"u_{self._generate_id()}" for _ in range(TEAM_SIZE)]

        team_data = {
            "team_name": self.team_name,
            "members": [
                {"user_id": uid, "username": f"User_{uid}", "is_active": True}
                for uid in self.user_ids
            ]
        }
        self.client.post("/team/add", json=team_data)

        # pr_id -> назначенные ревьюверы, как их вернул сервис
        self.open_prs = {}
        for i in range(3):
            self._create_pr(f"PR {i}")

    def _generate_id(self):
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=8))

    def _create_pr(self, name):
        pr_id = f"pr_{self._generate_id()}"
        pr_data = {
            "pull_request_id": pr_id,
            "pull_request_name": name,
            "author_id": random.choice(self.user_ids)
        }
        response = self.client.post("/pullRequest/create", json=pr_data, name="/pullRequest/create")
        if response.status_code == 201:
            self.open_prs[pr_id] = response.json()["pr"]["assigned_reviewers"]

    @task(3)
    def get_team(self):
        self.client.get(f"/team/get?team_name={self.team_name}", name="/team/get")

    @task(2)
    def get_user_reviews(self):
        user_id = random.choice(self.user_ids)
        self.client.get(f"/users/getReview?user_id={user_id}", name="/users/getReview")

    @task(2)
    def create_pr(self):
        self._create_pr("New PR")

    @task(1)
    def merge_pr(self):
        if self.open_prs:
            pr_id = random.choice(list(self.open_prs))
            self.client.post("/pullRequest/merge", json={"pull_request_id": pr_id})
            self.open_prs.pop(pr_id, None)

    @task(1)
    def reassign_reviewer(self):
        """Переназначение одного из ревьюверов, которых сервис назначил при создании"""
        candidates = [(pr_id, reviewers) for pr_id, reviewers in self.open_prs.items() if reviewers]
        if not candidates:
            return
        pr_id, reviewers = random.choice(candidates)
        with self.client.post("/pullRequest/reassign", json={
            "pull_request_id": pr_id,
            "old_user_id": random.choice(reviewers)
        }, catch_response=True) as response:
            if response.status_code == 200:
                self.open_prs[pr_id] = response.json()["pr"]["assigned_reviewers"]
                response.success()
            elif response.status_code == 409:
                # ревьювер мог смениться из-за деактивации
                self.open_prs.pop(pr_id, None)
                response.success()

    @task(1)
    def set_user_active(self):
        user_id = random.choice(self.user_ids)
        self.client.post("/users/setIsActive", json={
            "user_id": user_id,
            "is_active": random.choice([True, False])
        })

    @task(1)
    def deactivate_member(self):
        user_id = random.choice(self.user_ids)
        self.client.patch(
            f"/teams/{self.team_name}/deactivate-members",
            json={"user_ids": [user_id]},
            name="/teams/[team]/deactivate-members"
        )

    @task(1)
    def stats(self):
        self.client.get("/pullRequest/stats")
        self.client.get(f"/users/stats?user_id={random.choice(self.user_ids)}", name="/users/stats")

    @task(1)
    def health(self):
        self.client.get("/health")
