"""GraphQL documents used to fetch pull requests."""

# Keep in sync with IncomingPullRequest.from_graphql
PULL_REQUEST_FIELDS = """
  number
  mergeable
  headRef { name }
  repository {
    name
    owner { login }
  }
"""

OPEN_PULL_REQUESTS_QUERY = f"""
query ($owner: String!, $repo: String!, $branch: String!) {{
  repository(owner: $owner, name: $repo) {{
    pullRequests(last: 100, baseRefName: $branch, states: OPEN) {{
      nodes {{
        {PULL_REQUEST_FIELDS}
      }}
    }}
  }}
}}
"""

PULL_REQUEST_QUERY = f"""
query ($owner: String!, $repo: String!, $number: Int!) {{
  repository(owner: $owner, name: $repo) {{
    pullRequest(number: $number) {{
      {PULL_REQUEST_FIELDS}
    }}
  }}
}}
"""
