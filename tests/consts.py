TEST_REGION = "us-east-1"
TEST_ACCOUNT_ID = "123456789012"
TEST_BUCKET_NAME = "some-bucket"
TEST_TEMPLATE_BUCKET = "ssa-deploy-templates"
TEST_STACK_NAME = "landing-dev"
TEST_ROLE_ARN = f"arn:aws:iam::{TEST_ACCOUNT_ID}:role/landing-dev-deploy"
TEST_DISTRIBUTION_ID = "E2EXAMPLE123"
