from airflow import DAG
from airflow.providers.apache.spark.operators.spark_submit import SparkSubmitOperator
from datetime import datetime

with DAG(
    dag_id="taxi_tip_extract",
    start_date=datetime(2026, 1, 1),
    schedule=None,
    catchup=False,
) as dag:

    taxi_tip_extract = SparkSubmitOperator(
        task_id="taxi_tip_extract",
        conn_id="spark_local",
        application="/opt/spark/jobs/taxi_tip/pipeline.py",
        py_files="/opt/spark/jobs/taxi_tip.zip",
        name="taxi_tip_extract",
        verbose=True,
        deploy_mode="client",
        packages="org.apache.hadoop:hadoop-aws:3.4.1",
        num_executors=4,
        conf={
            "spark.executor.memoryOverhead": "1024m",

            # MinIO
            "spark.hadoop.fs.s3a.endpoint": "http://minio:9000",
            "spark.hadoop.fs.s3a.path.style.access": "true",
            "spark.hadoop.fs.s3a.connection.ssl.enabled": "false",
            "spark.hadoop.fs.s3a.aws.credentials.provider": "org.apache.hadoop.fs.s3a.SimpleAWSCredentialsProvider",
        },
        env_vars={
            "AWS_ACCESS_KEY_ID": "{{ var.value.minio_access_key }}",
            "AWS_SECRET_ACCESS_KEY": "{{ var.value.minio_secret_key }}",

            "TAXI_BASE_DIR": "s3a://lakehouse/nyc_taxi",
            "TAXI_PLOT_PATH": "/opt/spark/charts/tip_exploration.png",
            "SPARK_EXECUTOR_INSTANCES": "4",
            "TAXI_EXTRACT_FRACTION": "0.1",
            "TAXI_SHARD_COUNT": "10",
            "TAXI_WRITE_MODE": "overwrite",
        },
    )
